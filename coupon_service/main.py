"""
쿠폰 서비스 FastAPI 메인 애플리케이션

쿠폰 발급, 사용, 보상(롤백/복구), 선착순 프로모션 수령을 담당하는 API 서버입니다.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
import uvicorn

from coupon_service.config import get_settings
from coupon_service.models.base import close_db, init_db
from coupon_service.utils.logging import setup_logging, get_logger
from coupon_service.utils.exceptions import AppException, CouponException
from coupon_service.utils.prometheus_metrics import get_metrics
from coupon_service.utils.sentry_config import init_sentry

# API 라우터
from coupon_service.api.coupons import router as coupons_router
from coupon_service.api.internal_coupons import router as internal_coupons_router

INTERNAL_PATH_PREFIX = "/internal/"

settings = get_settings()

# 로깅 설정
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    애플리케이션 라이프사이클 관리

    시작 시: Sentry 초기화, 개발 환경 테이블 생성
    종료 시: 데이터베이스 연결 정리
    """
    logger.info("쿠폰 서비스 서버 시작 중...")

    # 프로덕션에서는 Alembic 마이그레이션 사용
    if settings.is_development:
        logger.info("데이터베이스 테이블 초기화...")
        await init_db()

    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT or settings.ENV,
        release=settings.APP_VERSION,
    )

    logger.info("서버 시작 완료")
    yield

    logger.info("쿠폰 서비스 서버 종료 중...")
    await close_db()
    logger.info("서버 종료 완료")


# FastAPI 애플리케이션 인스턴스
app = FastAPI(
    title=settings.APP_NAME,
    description="""
## 쿠폰 서비스

주문/결제/구독 서비스와 연동되는 쿠폰 생명주기 API입니다.

### 주요 기능

- **쿠폰 발급**: 회원 가입 WELCOME 쿠폰, 구독 결제 보상 쿠폰, 선착순 프로모션 쿠폰
- **쿠폰 사용**: 주문 시 검증 후 사용 처리 (동시 요청 중 하나만 성공)
- **보상 처리**: 주문 실패/취소 시 롤백, 주문 취소 실패 시 복구
- **조회**: 쿠폰 내역, 주문 시 사용 가능 쿠폰, 구독 누적 혜택
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


def _is_internal_request(request: Request) -> bool:
    return request.url.path.startswith(INTERNAL_PATH_PREFIX)


# 전역 예외 핸들러
@app.exception_handler(CouponException)
async def coupon_exception_handler(request: Request, exc: CouponException):
    """
    쿠폰 도메인 예외 처리

    내부 API는 서비스 간 호출 규약에 따라 code=200과 failure 코드로 응답하고,
    공개 API는 예외의 HTTP 상태 코드로 응답합니다.
    """
    logger.warning(
        f"CouponException: {exc.message}",
        extra={
            "error_code": exc.error_code,
            "failure_code": exc.failure_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    if _is_internal_request(request):
        return JSONResponse(
            status_code=200,
            content={
                "code": 200,
                "message": exc.message,
                "data": None,
                "failure": exc.failure_code,
            },
        )

    details = dict(exc.details)
    details["failure"] = exc.failure_code
    details["retryable"] = exc.retryable
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": details,
        },
    )


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """애플리케이션 정의 예외 처리"""
    logger.warning(
        f"AppException: {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """모든 예외를 캐치하는 최종 핸들러"""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "서버 내부 오류가 발생했습니다. 잠시 후 다시 시도해주세요.",
        },
    )


# 헬스 체크 엔드포인트
@app.get("/health", tags=["Health"])
async def health_check():
    """헬스 체크 엔드포인트 (로드 밸런서용)"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@app.get("/metrics", tags=["Monitoring"])
async def metrics():
    """Prometheus 메트릭 (text format)"""
    if not settings.PROMETHEUS_ENABLED:
        return JSONResponse(
            status_code=404,
            content={"error": "not_found", "message": "메트릭이 비활성화되어 있습니다."},
        )

    data, content_type = get_metrics()
    return Response(content=data, media_type=content_type)


# API 라우터 등록
app.include_router(coupons_router)
app.include_router(internal_coupons_router)


if __name__ == "__main__":
    # 개발 서버 실행
    uvicorn.run(
        "coupon_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_level="info",
    )
