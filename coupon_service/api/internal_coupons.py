"""
내부 쿠폰 API 엔드포인트

주문/결제/구독 서비스가 호출하는 서비스 간 API입니다.
도메인 오류는 main.py의 예외 핸들러가 code=200 + failure 응답으로 변환합니다.
"""

from fastapi import APIRouter, Depends

from coupon_service.services.coupon_service import CouponService
from coupon_service.api.dependencies import get_coupon_service
from coupon_service.services.coupon_requests import (
    OrderCancelInfo,
    OrderInfo,
    SubscriptionPaymentInfo,
)
from coupon_service.api.schemas.coupon_schemas import (
    InternalResponse,
    WelcomeCouponRequest,
)

router = APIRouter(prefix="/internal/coupons", tags=["internal-coupons"])


@router.post("/welcome", response_model=InternalResponse)
async def issue_welcome_coupon(
    request: WelcomeCouponRequest,
    service: CouponService = Depends(get_coupon_service),
):
    """회원 가입 WELCOME 쿠폰 발급"""
    await service.issue_welcome_coupon_by_join(request.consumer_id)
    return InternalResponse(message="WELCOME 쿠폰이 발급되었습니다")


@router.post("/deduct", response_model=InternalResponse)
async def deduct_coupon(
    order_info: OrderInfo,
    service: CouponService = Depends(get_coupon_service),
):
    """
    주문 시 쿠폰 사용 처리

    **failure 코드**:
    - `NOT_FOUND_COUPON`, `NOT_FOUND_COUPON_RECEIPT`: 쿠폰 또는 수령 내역 없음
    - `ALREADY_USED_COUPON`: 이미 사용한 쿠폰
    - `EXPIRED_COUPON`: 만료된 쿠폰
    - `INCORRECT_COUPON_DISCOUNT_AMOUNT`: 할인 금액 불일치
    - `INSUFFICIENT_MIN_ORDER_PRICE`: 최소 주문 금액 미달
    """
    await service.deduct_coupon(order_info)
    return InternalResponse(message="쿠폰 사용 처리 완료")


@router.post("/rollback", response_model=InternalResponse)
async def rollback_coupon_usage(
    order_info: OrderInfo,
    service: CouponService = Depends(get_coupon_service),
):
    """주문 실패 시 쿠폰 사용 롤백"""
    await service.rollback_coupon_usage(order_info)
    return InternalResponse(message="쿠폰 롤백 완료")


@router.post("/refund", response_model=InternalResponse)
async def refund_coupon_by_order_cancel(
    cancel_info: OrderCancelInfo,
    service: CouponService = Depends(get_coupon_service),
):
    """주문 취소 시 쿠폰 환불"""
    await service.refund_coupon_by_order_cancel(cancel_info)
    return InternalResponse(message="쿠폰 환불 완료")


@router.post("/recover", response_model=InternalResponse)
async def recover_coupon_by_failed_order_cancel(
    cancel_info: OrderCancelInfo,
    service: CouponService = Depends(get_coupon_service),
):
    """주문 취소 실패 시 쿠폰 사용 상태 복구"""
    await service.recover_coupon_by_failed_order_cancel(cancel_info)
    return InternalResponse(message="쿠폰 복구 완료")


@router.post("/subscription-reward", response_model=InternalResponse)
async def give_regular_payments_coupon(
    payment_info: SubscriptionPaymentInfo,
    service: CouponService = Depends(get_coupon_service),
):
    """구독 결제 완료 시 구독 전용 쿠폰 발급"""
    coupons = await service.give_regular_payments_coupon(payment_info)
    return InternalResponse(
        message="구독 쿠폰이 발급되었습니다",
        data={"issued_count": len(coupons)},
    )


@router.post("/promotions", response_model=InternalResponse)
async def issue_promotion_coupons(
    service: CouponService = Depends(get_coupon_service),
):
    """선착순 프로모션 쿠폰 발급"""
    coupon = await service.issue_promotion_coupons()
    return InternalResponse(
        message="프로모션 쿠폰이 발급되었습니다",
        data={
            "coupon_code": coupon.coupon_code,
            "issue_limit": coupon.issue_limit,
            "expired_at": coupon.expired_at.isoformat(),
        },
    )
