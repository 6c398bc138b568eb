"""
쿠폰 사용 검증

주문 시 쿠폰을 사용할 수 있는지 판단하는 순수 규칙 모음입니다.
저장소 접근이나 상태 변경 없이 입력값만으로 판단합니다.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from coupon_service.models.coupon import Coupon
from coupon_service.models.coupon_receipt import CouponReceipt
from coupon_service.utils.exceptions import (
    CouponException,
    AlreadyUsedCouponException,
    CouponExpiredException,
    DiscountAmountMismatchException,
    InsufficientOrderAmountException,
)


class CouponViolation(str, Enum):
    """쿠폰 사용 규칙 위반 유형 (검사 순서대로)"""

    ALREADY_USED = "ALREADY_USED"
    EXPIRED = "EXPIRED"
    DISCOUNT_AMOUNT_MISMATCH = "DISCOUNT_AMOUNT_MISMATCH"
    INSUFFICIENT_ORDER_AMOUNT = "INSUFFICIENT_ORDER_AMOUNT"

    def to_exception(self, coupon: Coupon, claimed_discount: int) -> CouponException:
        if self is CouponViolation.ALREADY_USED:
            return AlreadyUsedCouponException()
        if self is CouponViolation.EXPIRED:
            return CouponExpiredException()
        if self is CouponViolation.DISCOUNT_AMOUNT_MISMATCH:
            return DiscountAmountMismatchException(claimed=claimed_discount)
        return InsufficientOrderAmountException(coupon.min_order_price)


def is_valid_period(expired_at: datetime, now: datetime) -> bool:
    """만료 전인지 확인 (만료 시각과 같으면 만료)"""
    return now < expired_at


def find_violation(
    receipt: CouponReceipt,
    coupon: Coupon,
    order_amount: int,
    claimed_discount: int,
    now: datetime,
) -> Optional[CouponViolation]:
    """
    쿠폰 사용 가능 여부 검사

    첫 번째로 위반한 규칙만 반환합니다.
    1. 이미 사용한 쿠폰
    2. 만료된 쿠폰
    3. 요청한 할인 금액과 쿠폰 할인 금액 불일치
    4. 최소 주문 금액 미달

    Returns:
        위반 유형, 사용 가능하면 None
    """
    if receipt.is_use:
        return CouponViolation.ALREADY_USED

    if not is_valid_period(coupon.expired_at, now):
        return CouponViolation.EXPIRED

    if claimed_discount != coupon.discount_amount:
        return CouponViolation.DISCOUNT_AMOUNT_MISMATCH

    if order_amount < coupon.min_order_price:
        return CouponViolation.INSUFFICIENT_ORDER_AMOUNT

    return None


def validate(
    receipt: CouponReceipt,
    coupon: Coupon,
    order_amount: int,
    claimed_discount: int,
    now: datetime,
) -> None:
    """
    쿠폰 사용 검증

    Raises:
        CouponException: 위반한 규칙에 해당하는 도메인 예외
    """
    violation = find_violation(receipt, coupon, order_amount, claimed_discount, now)
    if violation is not None:
        raise violation.to_exception(coupon, claimed_discount)
