"""
쿠폰 서비스

주문/결제/구독 서비스가 호출하는 진입점입니다.
요청 DTO를 풀어 생명주기 서비스로 위임하며, 쿠폰 코드가 없는 주문은 아무것도 하지 않습니다.
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_service.models.coupon import Coupon
from coupon_service.models.coupon_receipt import CouponReceipt
from coupon_service.services.coupon_lifecycle_service import (
    CouponLifecycleService,
    GrantResult,
    PromotionStatus,
)
from coupon_service.services.coupon_requests import (
    OrderCancelInfo,
    OrderInfo,
    SubscriptionPaymentInfo,
)
from coupon_service.utils.logging import get_logger

logger = get_logger(__name__)


class CouponService:
    """쿠폰 서비스 (서비스 간 호출 진입점)"""

    def __init__(
        self,
        db_session: AsyncSession,
        lifecycle: Optional[CouponLifecycleService] = None,
    ):
        self.db = db_session
        self.lifecycle = lifecycle or CouponLifecycleService(db_session)

    async def issue_welcome_coupon_by_join(self, consumer_id: int) -> Coupon:
        """회원 가입 시 WELCOME 쿠폰 발급"""
        return await self.lifecycle.issue_welcome(consumer_id)

    async def deduct_coupon(self, order_info: OrderInfo) -> Optional[CouponReceipt]:
        """
        주문 시 쿠폰 사용 처리

        Raises:
            CouponException: 검증 실패 시 (주문 서비스가 주문을 중단해야 함)
        """
        if order_info.coupon_code is None:
            return None

        return await self.lifecycle.deduct(
            consumer_id=order_info.consumer_id,
            coupon_code=order_info.coupon_code,
            order_amount=order_info.total_amount,
            claimed_discount=order_info.coupon_amount,
        )

    async def rollback_coupon_usage(self, order_info: OrderInfo) -> Optional[CouponReceipt]:
        """주문 실패 시 쿠폰 사용 롤백"""
        if order_info.coupon_code is None:
            return None

        logger.info(f"주문 실패로 쿠폰 롤백: consumer_id={order_info.consumer_id}")
        return await self.lifecycle.rollback(order_info.consumer_id, order_info.coupon_code)

    async def refund_coupon_by_order_cancel(
        self, cancel_info: OrderCancelInfo
    ) -> Optional[CouponReceipt]:
        """주문 취소 시 쿠폰 환불 (미사용 상태로 복구)"""
        if cancel_info.coupon_code is None:
            return None

        return await self.lifecycle.rollback(cancel_info.consumer_id, cancel_info.coupon_code)

    async def recover_coupon_by_failed_order_cancel(
        self, cancel_info: OrderCancelInfo
    ) -> Optional[CouponReceipt]:
        """주문 취소 실패 시 환불한 쿠폰을 다시 사용 상태로 복구"""
        if cancel_info.coupon_code is None:
            return None

        logger.info(f"주문 취소 실패로 쿠폰 복구: consumer_id={cancel_info.consumer_id}")
        return await self.lifecycle.recover(cancel_info.consumer_id, cancel_info.coupon_code)

    async def give_regular_payments_coupon(
        self, subscription_payment_info: SubscriptionPaymentInfo
    ) -> List[Coupon]:
        """구독 결제 완료 시 구독 전용 쿠폰 발급"""
        return await self.lifecycle.issue_subscription_reward(
            consumer_id=subscription_payment_info.consumer_id,
            effective_at=subscription_payment_info.successed_at,
        )

    async def issue_promotion_coupons(self) -> Coupon:
        """선착순 프로모션 쿠폰 발급"""
        return await self.lifecycle.issue_promotion_batch()

    async def precheck_promotion_receipt(self, consumer_id: int) -> PromotionStatus:
        """프로모션 쿠폰 수령 사전 체크"""
        return await self.lifecycle.precheck_promotion(consumer_id)

    async def grant_promotion_unit(self, consumer_id: int) -> GrantResult:
        """
        현재 프로모션 쿠폰 1장 수령

        Raises:
            PromotionNotOpenException: 진행 중인 프로모션이 없거나, 수령 가능 시간이 아니거나, 만료된 경우
        """
        return await self.lifecycle.grant_promotion_unit(consumer_id)
