"""
쿠폰 조회 서비스

목적: 소비자 쿠폰 내역, 주문 시 사용 가능 쿠폰, 구독 누적 혜택 조회
상태를 변경하지 않으며, 생명주기 서비스와 같은 저장소를 읽습니다.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_service.models.coupon import Coupon
from coupon_service.models.coupon_receipt import CouponReceipt
from coupon_service.services.coupon_validator import is_valid_period
from coupon_service.stores.coupon_store import CouponStore
from coupon_service.stores.receipt_store import ReceiptStore
from coupon_service.utils.clock import utcnow
from coupon_service.utils.logging import get_logger

logger = get_logger(__name__)

SEARCH_AVAILABLE = "available"
SEARCH_USED = "used"


@dataclass(frozen=True)
class CouponSummary:
    """쿠폰 항목 (코드, 종류, 할인 금액, 만료일, 최소 주문 금액)"""

    coupon_code: str
    kind: str
    discount_amount: int
    expired_at: datetime
    min_order_price: int

    @classmethod
    def from_coupon(cls, coupon: Coupon) -> "CouponSummary":
        return cls(
            coupon_code=coupon.coupon_code,
            kind=coupon.kind,
            discount_amount=coupon.discount_amount,
            expired_at=coupon.expired_at,
            min_order_price=coupon.min_order_price,
        )


@dataclass(frozen=True)
class CouponPage:
    """쿠폰 내역 페이지"""

    content: List[CouponSummary]
    page: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return math.ceil(self.total_elements / self.size)


@dataclass(frozen=True)
class AvailableCouponSummary:
    """주문 시 사용 가능한 쿠폰 요약"""

    count: int
    coupons: List[CouponSummary] = field(default_factory=list)


class CouponQueryService:
    """쿠폰 조회 서비스"""

    def __init__(
        self,
        db_session: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db_session
        self.coupons = CouponStore(db_session)
        self.receipts = ReceiptStore(db_session)
        self.clock = clock

    async def get_my_coupons(
        self,
        consumer_id: int,
        page: int = 0,
        size: int = 10,
        search: Optional[str] = None,
    ) -> CouponPage:
        """
        소비자 쿠폰 내역 조회 (수령일 최신순)

        Args:
            consumer_id: 소비자 ID
            page: 페이지 번호 (0부터 시작)
            size: 페이지 크기
            search: "available" (미사용 + 유효 기간 내) 또는 "used" (사용 완료 또는 만료)

        Returns:
            CouponPage. search 값이 그 외인 경우 빈 페이지
        """
        now = self.clock()

        if search == SEARCH_AVAILABLE:
            condition = and_(CouponReceipt.is_use.is_(False), Coupon.expired_at > now)
        elif search == SEARCH_USED:
            condition = or_(CouponReceipt.is_use.is_(True), Coupon.expired_at <= now)
        else:
            logger.debug(f"알 수 없는 쿠폰 검색 조건: search={search}")
            return CouponPage(content=[], page=page, size=size, total_elements=0)

        filters = (CouponReceipt.consumer_id == consumer_id, condition)

        total_result = await self.db.execute(
            select(func.count())
            .select_from(CouponReceipt)
            .join(Coupon, Coupon.coupon_code == CouponReceipt.coupon_code)
            .where(*filters)
        )
        total_elements = total_result.scalar_one()

        result = await self.db.execute(
            select(Coupon)
            .join(CouponReceipt, CouponReceipt.coupon_code == Coupon.coupon_code)
            .where(*filters)
            .order_by(CouponReceipt.created_at.desc())
            .offset(page * size)
            .limit(size)
        )
        content = [CouponSummary.from_coupon(c) for c in result.scalars().all()]

        return CouponPage(
            content=content,
            page=page,
            size=size,
            total_elements=total_elements,
        )

    async def get_available_coupons_for_order(
        self, consumer_id: int, total_amount: int
    ) -> AvailableCouponSummary:
        """
        주문 금액으로 사용 가능한 쿠폰 조회

        미사용, 유효 기간 내, 최소 주문 금액 이하인 쿠폰만 포함합니다.
        """
        now = self.clock()
        receipts = await self.receipts.find_by_consumer_and_usage(consumer_id, False)
        coupons = await self.coupons.find_by_codes(r.coupon_code for r in receipts)

        usable = []
        for receipt in receipts:
            coupon = coupons.get(receipt.coupon_code)
            if coupon is None:
                continue
            if not is_valid_period(coupon.expired_at, now):
                continue
            if coupon.min_order_price > total_amount:
                continue
            usable.append(CouponSummary.from_coupon(coupon))

        return AvailableCouponSummary(count=len(usable), coupons=usable)

    async def get_subscription_benefit(self, consumer_id: int) -> int:
        """사용 완료한 쿠폰 할인 금액 합계 (누적 혜택)"""
        receipts = await self.receipts.find_by_consumer_and_usage(consumer_id, True)
        coupons = await self.coupons.find_by_codes(r.coupon_code for r in receipts)

        return sum(
            coupons[r.coupon_code].discount_amount
            for r in receipts
            if r.coupon_code in coupons
        )
