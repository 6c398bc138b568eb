"""
쿠폰 수령 내역 저장소

(쿠폰 코드, 소비자 ID) 단위의 수령 내역 저장과 사용 상태 전이를 담당합니다.
"""

from typing import List, Optional
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import FlushError
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_service.models.coupon_receipt import CouponReceipt, ReceiptKey
from coupon_service.utils.exceptions import (
    DuplicateReceiptException,
    ReceiptNotFoundException,
)


class ReceiptStore:
    """쿠폰 수령 내역 저장소"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def save(self, receipt: CouponReceipt) -> CouponReceipt:
        """
        수령 내역 저장

        Raises:
            DuplicateReceiptException: 동일한 (쿠폰, 소비자) 내역이 이미 있는 경우.
                호출자는 트랜잭션을 롤백해야 합니다.
        """
        self.db.add(receipt)
        try:
            await self.db.flush()
        except (IntegrityError, FlushError) as e:
            raise DuplicateReceiptException(receipt.coupon_code) from e
        return receipt

    async def get(self, key: ReceiptKey) -> Optional[CouponReceipt]:
        result = await self.db.execute(
            select(CouponReceipt).where(
                CouponReceipt.coupon_code == key.coupon_code,
                CouponReceipt.consumer_id == key.consumer_id,
            )
        )
        return result.scalar_one_or_none()

    async def find_by_key(self, key: ReceiptKey) -> CouponReceipt:
        """
        수령 내역 조회

        Raises:
            ReceiptNotFoundException: 수령 내역이 없는 경우
        """
        receipt = await self.get(key)
        if receipt is None:
            raise ReceiptNotFoundException(key.coupon_code, key.consumer_id)
        return receipt

    async def find_by_consumer(
        self,
        consumer_id: int,
        page: Optional[int] = None,
        size: Optional[int] = None,
    ) -> List[CouponReceipt]:
        """
        소비자의 수령 내역 조회 (최신순)

        Args:
            consumer_id: 소비자 ID
            page: 페이지 번호 (0부터 시작, None이면 전체)
            size: 페이지 크기
        """
        query = (
            select(CouponReceipt)
            .where(CouponReceipt.consumer_id == consumer_id)
            .order_by(CouponReceipt.created_at.desc())
        )
        if page is not None and size is not None:
            query = query.offset(page * size).limit(size)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_by_consumer(self, consumer_id: int) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(CouponReceipt)
            .where(CouponReceipt.consumer_id == consumer_id)
        )
        return result.scalar_one()

    async def count_by_coupon(self, coupon_code: str) -> int:
        """쿠폰별 수령 인원 (프로모션 수령 수량 대사용)"""
        result = await self.db.execute(
            select(func.count())
            .select_from(CouponReceipt)
            .where(CouponReceipt.coupon_code == coupon_code)
        )
        return result.scalar_one()

    async def find_by_consumer_and_usage(
        self, consumer_id: int, is_use: bool
    ) -> List[CouponReceipt]:
        result = await self.db.execute(
            select(CouponReceipt)
            .where(
                CouponReceipt.consumer_id == consumer_id,
                CouponReceipt.is_use == is_use,
            )
            .order_by(CouponReceipt.created_at.desc())
        )
        return list(result.scalars().all())

    async def set_usage(
        self,
        key: ReceiptKey,
        is_use: bool,
        expected: Optional[bool] = None,
    ) -> bool:
        """
        사용 상태 변경 (단일 행 원자적 UPDATE)

        Args:
            key: 수령 내역 식별자
            is_use: 변경할 사용 상태
            expected: 지정하면 현재 상태가 이 값일 때만 변경 (compare-and-set)

        Returns:
            변경된 행이 있는지 여부
        """
        query = update(CouponReceipt).where(
            CouponReceipt.coupon_code == key.coupon_code,
            CouponReceipt.consumer_id == key.consumer_id,
        )
        if expected is not None:
            query = query.where(CouponReceipt.is_use == expected)

        result = await self.db.execute(
            query.values(is_use=is_use).execution_options(
                synchronize_session=False
            )
        )
        return result.rowcount == 1
