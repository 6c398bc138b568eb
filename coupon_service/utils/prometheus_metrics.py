"""
Prometheus 메트릭 수집 유틸리티

쿠폰 서비스의 주요 메트릭을 수집하고 Prometheus에 노출합니다.

주요 메트릭:
- 쿠폰 발급 수 (Counter)
- 쿠폰 사용 상태 전이 수 (Counter)
- 쿠폰 검증 실패 수 (Counter)
- 선착순 수령 결과 (Counter)
"""

from prometheus_client import (
    Counter,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
)


# 커스텀 레지스트리 (기본 메트릭 제외)
registry = CollectorRegistry()

# ===========================
# 애플리케이션 정보
# ===========================
app_info = Info(
    "coupon_app",
    "Coupon Service Application Info",
    registry=registry,
)
app_info.info({"version": "1.0.0", "service": "coupon-service"})

# ===========================
# 쿠폰 메트릭
# ===========================
coupon_issued_total = Counter(
    "coupon_issued_total",
    "발급된 쿠폰 수",
    ["kind"],  # WELCOME, PROMOTION, SUBSCRIPTION_TIER_A, SUBSCRIPTION_TIER_B
    registry=registry,
)

coupon_usage_transitions_total = Counter(
    "coupon_usage_transitions_total",
    "쿠폰 사용 상태 전이 수",
    ["action"],  # deduct, rollback, recover
    registry=registry,
)

coupon_validation_failures_total = Counter(
    "coupon_validation_failures_total",
    "쿠폰 사용 검증 실패 수",
    ["violation"],
    registry=registry,
)

coupon_promotion_grants_total = Counter(
    "coupon_promotion_grants_total",
    "선착순 쿠폰 수령 시도 결과",
    ["outcome"],  # granted, sold_out, duplicate, conflict
    registry=registry,
)


def get_metrics() -> tuple[bytes, str]:
    """
    Prometheus 메트릭 데이터 반환

    Returns:
        (메트릭 데이터, Content-Type)
    """
    return generate_latest(registry), CONTENT_TYPE_LATEST
