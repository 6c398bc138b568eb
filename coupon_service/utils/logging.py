"""
로깅 설정 및 쿠폰 코드 자동 마스킹

쿠폰 코드는 소지자가 곧 사용 권한을 갖는 값이므로 로그에 원문을 남기지 않습니다.
"""

import logging
import re
import json
from datetime import datetime
import os


# LogRecord 기본 속성 (extra로 전달된 값만 골라내기 위해 사용)
_RESERVED_RECORD_ATTRS = set(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


class CouponCodeMaskingFilter(logging.Filter):
    """
    쿠폰 코드 자동 마스킹 필터

    AbCd-EfGh-IjKl-Mn → AbCd-****-****-Mn
    """

    COUPON_CODE_PATTERN = re.compile(
        r"\b([A-Za-z0-9]{4})-[A-Za-z0-9]{4}-[A-Za-z0-9]{4}-([A-Za-z0-9]{2})\b"
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """
        로그 레코드를 필터링하여 쿠폰 코드 마스킹

        Returns:
            bool: 항상 True (필터 통과)
        """
        if isinstance(record.msg, str):
            record.msg = self.mask_coupon_codes(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    key: self._mask_value(value) for key, value in record.args.items()
                }
            else:
                record.args = tuple(self._mask_value(arg) for arg in record.args)

        for key, value in list(vars(record).items()):
            if key not in _RESERVED_RECORD_ATTRS and isinstance(value, str):
                setattr(record, key, self.mask_coupon_codes(value))

        return True

    def _mask_value(self, value):
        if isinstance(value, str):
            return self.mask_coupon_codes(value)
        return value

    @classmethod
    def mask_coupon_codes(cls, text: str) -> str:
        """텍스트 안의 쿠폰 코드를 앞 4자리와 끝 2자리만 남기고 마스킹"""
        return cls.COUPON_CODE_PATTERN.sub(r"\1-****-****-\2", text)


class JSONFormatter(logging.Formatter):
    """
    JSON 형식 로그 포맷터

    구조화된 로그를 위해 JSON 형식으로 출력합니다.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # extra로 전달된 컨텍스트 정보
        for key, value in vars(record).items():
            if key not in _RESERVED_RECORD_ATTRS and key not in log_data:
                log_data[key] = value

        # 예외 정보
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(
    log_level: str = None,
    log_format: str = None,
    log_file: str = None,
) -> None:
    """
    전역 로깅 설정

    Args:
        log_level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: 로그 포맷 ("json" 또는 "text")
        log_file: 로그 파일 경로 (None이면 콘솔만)
    """
    from coupon_service.config import get_settings

    settings = get_settings()
    log_level = log_level or settings.LOG_LEVEL
    log_format = log_format or settings.LOG_FORMAT
    log_file = log_file or settings.LOG_FILE

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # 기존 핸들러 제거
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if log_format == "json":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.addFilter(CouponCodeMaskingFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.addFilter(CouponCodeMaskingFilter())
        root_logger.addHandler(file_handler)

    # 써드파티 라이브러리 로그 레벨 조정
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    로거 인스턴스 생성

    Args:
        name: 로거 이름 (보통 __name__ 사용)
    """
    return logging.getLogger(name)


class AuditLogger:
    """
    감사 로그 (Audit Log)

    쿠폰 발급과 사용 상태 전이를 기록합니다 (발급, 사용, 롤백, 복구, 선착순 수령).
    """

    def __init__(self):
        self.logger = get_logger("audit")

    def log_event(
        self,
        event_type: str,
        consumer_id: int = None,
        coupon_code: str = None,
        action: str = None,
        details: dict = None,
    ):
        """
        감사 이벤트 로깅

        Args:
            event_type: 이벤트 유형 (coupon.deduct, coupon.issue.welcome 등)
            consumer_id: 소비자 ID
            coupon_code: 쿠폰 코드
            action: 수행된 작업 (issue, deduct, rollback, recover, grant)
            details: 추가 상세 정보
        """
        self.logger.info(
            f"[AUDIT] {event_type}",
            extra={
                "event_type": event_type,
                "consumer_id": consumer_id,
                "coupon_code": coupon_code,
                "action": action,
                "details": details or {},
            },
        )


# 전역 감사 로거 인스턴스
audit_logger = AuditLogger()
