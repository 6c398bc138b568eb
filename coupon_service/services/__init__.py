"""
쿠폰 서비스 레이어
"""

from coupon_service.services.code_generator import CouponCodeGenerator
from coupon_service.services.coupon_lifecycle_service import (
    CouponLifecycleService,
    GrantOutcome,
    GrantResult,
    PromotionStatus,
)
from coupon_service.services.coupon_query_service import (
    AvailableCouponSummary,
    CouponPage,
    CouponQueryService,
    CouponSummary,
)
from coupon_service.services.coupon_service import CouponService

__all__ = [
    "CouponCodeGenerator",
    "CouponLifecycleService",
    "GrantOutcome",
    "GrantResult",
    "PromotionStatus",
    "AvailableCouponSummary",
    "CouponPage",
    "CouponQueryService",
    "CouponSummary",
    "CouponService",
]
