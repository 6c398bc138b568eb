"""
커스텀 예외 클래스 정의

애플리케이션 전역에서 사용하는 예외 클래스를 정의합니다.
쿠폰 도메인 예외는 서비스 간 호출에서 사용하는 failure_code를 함께 가집니다.
"""

from typing import Optional, Any
from fastapi import status


class AppException(Exception):
    """
    애플리케이션 기본 예외 클래스

    모든 커스텀 예외는 이 클래스를 상속받습니다.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "app_error",
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(AppException):
    """
    리소스를 찾을 수 없을 때 발생하는 예외
    """

    def __init__(
        self,
        resource: str = "리소스",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            if resource_id:
                message = f"{resource}를 찾을 수 없습니다 (ID: {resource_id})"
            else:
                message = f"{resource}를 찾을 수 없습니다."

        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="not_found",
            details={"resource": resource, "resource_id": resource_id},
        )


class UnauthorizedException(AppException):
    """
    인증 실패 예외 (401 Unauthorized)
    """

    def __init__(self, message: str = "인증에 실패했습니다."):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="unauthorized",
        )


class ConflictException(AppException):
    """
    리소스 충돌 예외 (409 Conflict)
    """

    def __init__(
        self,
        message: str = "요청이 현재 서버 상태와 충돌합니다.",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="conflict",
            details=details,
        )


class BusinessRuleException(AppException):
    """
    비즈니스 규칙 위반 예외

    예: 만료된 쿠폰, 최소 주문 금액 미달 등
    """

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        if rule:
            details = details or {}
            details["rule"] = rule

        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="business_rule_violation",
            details=details,
        )


# 쿠폰 도메인 예외 클래스


class CouponException(AppException):
    """
    쿠폰 도메인 예외 기반 클래스

    failure_code: 호출 서비스에 전달하는 실패 코드
    retryable: 일시적 경합으로 인한 실패 여부 (재시도 가능)
    """

    failure_code: str = "COUPON_ERROR"
    retryable: bool = False


class CouponNotFoundException(CouponException, NotFoundException):
    """쿠폰을 찾을 수 없을 때"""

    failure_code = "NOT_FOUND_COUPON"

    def __init__(self, coupon_code: Optional[str] = None):
        super().__init__(resource="쿠폰", resource_id=coupon_code)


class ReceiptNotFoundException(CouponException, NotFoundException):
    """쿠폰 수령 내역을 찾을 수 없을 때 (정방향 처리가 일어나지 않은 경우)"""

    failure_code = "NOT_FOUND_COUPON_RECEIPT"

    def __init__(self, coupon_code: str, consumer_id: int):
        super().__init__(
            resource="쿠폰 수령 내역",
            resource_id=f"{coupon_code}:{consumer_id}",
        )


class AlreadyUsedCouponException(CouponException, BusinessRuleException):
    """이미 사용한 쿠폰"""

    failure_code = "ALREADY_USED_COUPON"

    def __init__(self):
        super().__init__(message="이미 사용한 쿠폰입니다.", rule="coupon_not_used")


class CouponExpiredException(CouponException, BusinessRuleException):
    """만료된 쿠폰"""

    failure_code = "EXPIRED_COUPON"

    def __init__(self):
        super().__init__(message="만료된 쿠폰입니다.", rule="coupon_not_expired")


class DiscountAmountMismatchException(CouponException, BusinessRuleException):
    """쿠폰 코드와 할인 금액 불일치"""

    failure_code = "INCORRECT_COUPON_DISCOUNT_AMOUNT"

    def __init__(self, claimed: Optional[int] = None):
        super().__init__(
            message="쿠폰 코드와 할인 금액이 일치하지 않습니다.",
            rule="discount_amount_match",
            details={"claimed": claimed} if claimed is not None else None,
        )


class InsufficientOrderAmountException(CouponException, BusinessRuleException):
    """쿠폰 사용을 위한 최소 주문 금액 미달"""

    failure_code = "INSUFFICIENT_MIN_ORDER_PRICE"

    def __init__(self, min_order_price: Optional[int] = None):
        super().__init__(
            message="쿠폰 사용을 위한 최소 주문 금액에 미달합니다.",
            rule="min_order_price",
            details=(
                {"min_order_price": min_order_price}
                if min_order_price is not None
                else None
            ),
        )


class AlreadyReceivedPromotionException(CouponException, ConflictException):
    """이미 수령한 프로모션 쿠폰"""

    failure_code = "ALREADY_RECEIVED_PROMOTION_COUPON"

    def __init__(self, message: str = "이미 수령한 프로모션 쿠폰입니다."):
        super().__init__(message=message)


class DuplicateReceiptException(AlreadyReceivedPromotionException):
    """동일한 (쿠폰, 소비자) 수령 내역 중복 생성 시도"""

    failure_code = "DUPLICATE_COUPON_RECEIPT"

    def __init__(self, coupon_code: Optional[str] = None):
        super().__init__(message="이미 수령한 쿠폰입니다.")
        if coupon_code:
            self.details["coupon_code"] = coupon_code


class PromotionNotOpenException(CouponException, BusinessRuleException):
    """프로모션 쿠폰 수령 가능 시간이 아님 (또는 진행 중인 프로모션 없음)"""

    failure_code = "NOT_OPEN_PROMOTION_COUPON_EVENT"

    def __init__(self):
        super().__init__(
            message="프로모션 쿠폰 이벤트가 진행 중이 아닙니다.",
            rule="promotion_open",
        )


class SoldOutException(CouponException, ConflictException):
    """프로모션 쿠폰 소진"""

    failure_code = "SOLD_OUT_COUPON"

    def __init__(self):
        super().__init__(message="프로모션 쿠폰이 모두 소진되었습니다.")


class PromotionGrantConflictException(CouponException, ConflictException):
    """프로모션 쿠폰 수령 중 일시적 경합 (재시도 가능)"""

    failure_code = "PROMOTION_GRANT_CONFLICT"
    retryable = True

    def __init__(self):
        super().__init__(
            message="요청이 많아 처리하지 못했습니다. 잠시 후 다시 시도해주세요."
        )


class CouponCodeConflictException(CouponException, ConflictException):
    """쿠폰 코드 생성 충돌 (재시도 가능)"""

    failure_code = "COUPON_CODE_CONFLICT"
    retryable = True

    def __init__(self, attempts: int):
        super().__init__(
            message="쿠폰 코드를 생성하지 못했습니다.",
            details={"attempts": attempts},
        )
