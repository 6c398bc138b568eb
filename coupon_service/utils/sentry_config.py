"""
Sentry 에러 트래킹 설정

주요 기능:
- 예외 자동 캡처 및 전송
- 성능 트랜잭션 추적
- 쿠폰 코드 자동 마스킹
- 환경별 샘플링 비율 조정
"""

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
import logging

from coupon_service.utils.logging import CouponCodeMaskingFilter


def init_sentry(
    dsn: str = None,
    environment: str = "development",
    traces_sample_rate: float = 1.0,
    release: str = "1.0.0",
) -> bool:
    """
    Sentry SDK 초기화

    Args:
        dsn: Sentry DSN. 없으면 초기화하지 않음 (로컬 개발 시)
        environment: 환경 이름 (development, staging, production)
        traces_sample_rate: 트랜잭션 샘플링 비율 (0.0 ~ 1.0)
        release: 릴리스 버전

    Returns:
        bool: 초기화 여부
    """
    if not dsn:
        logging.info("Sentry DSN이 설정되지 않았습니다. Sentry 모니터링이 비활성화됩니다.")
        return False

    # 환경별 샘플링 비율 자동 조정
    if environment == "production":
        traces_sample_rate = min(traces_sample_rate, 0.1)
    elif environment == "staging":
        traces_sample_rate = min(traces_sample_rate, 0.5)

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[
            FastApiIntegration(
                transaction_style="endpoint",
                failed_request_status_codes={*range(500, 600)},  # 5xx 에러만 캡처
            ),
            SqlalchemyIntegration(),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            ),
        ],
        traces_sample_rate=traces_sample_rate,
        release=release,
        send_default_pii=False,
        before_send=before_send_filter,
        before_breadcrumb=before_breadcrumb_filter,
        max_breadcrumbs=50,
        attach_stacktrace=True,
    )

    logging.info(
        f"Sentry 초기화 완료: environment={environment}, "
        f"traces_sample_rate={traces_sample_rate}"
    )
    return True


def before_send_filter(event, hint):
    """
    이벤트 전송 전 쿠폰 코드 마스킹

    요청 본문, extra, 예외 메시지에 포함된 쿠폰 코드를 가립니다.
    """
    if "request" in event and "data" in event["request"]:
        event["request"]["data"] = mask_coupon_codes(event["request"]["data"])

    if "extra" in event:
        event["extra"] = mask_coupon_codes(event["extra"])

    for value in event.get("exception", {}).get("values", []):
        if isinstance(value.get("value"), str):
            value["value"] = CouponCodeMaskingFilter.mask_coupon_codes(value["value"])

    return event


def before_breadcrumb_filter(crumb, hint):
    """Breadcrumb 메시지(로그, SQL)의 쿠폰 코드 마스킹"""
    if isinstance(crumb.get("message"), str):
        crumb["message"] = CouponCodeMaskingFilter.mask_coupon_codes(crumb["message"])
    return crumb


def mask_coupon_codes(data):
    """
    쿠폰 코드 마스킹 (재귀적)

    Args:
        data: 마스킹할 데이터 (dict, list, str 등)
    """
    if isinstance(data, dict):
        return {key: mask_coupon_codes(value) for key, value in data.items()}

    elif isinstance(data, list):
        return [mask_coupon_codes(item) for item in data]

    elif isinstance(data, str):
        return CouponCodeMaskingFilter.mask_coupon_codes(data)

    return data
