"""
쿠폰 저장소

쿠폰 템플릿의 조회/저장과 잔여 수량의 원자적 차감을 담당합니다.
"""

from typing import Dict, Iterable
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_service.models.coupon import Coupon, CouponKind
from coupon_service.utils.exceptions import CouponNotFoundException


class CouponStore:
    """쿠폰 저장소"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def save(self, coupon: Coupon) -> Coupon:
        """
        쿠폰 저장

        이미 존재하는 코드라면 issue_limit만 갱신합니다 (나머지 필드는 발급 후 불변).

        Args:
            coupon: 저장할 쿠폰

        Returns:
            저장된 쿠폰
        """
        existing = await self.db.get(Coupon, coupon.coupon_code)
        if existing is None:
            self.db.add(coupon)
            await self.db.flush()
            return coupon

        if existing is not coupon:
            existing.issue_limit = coupon.issue_limit
        await self.db.flush()
        return existing

    async def get(self, coupon_code: str) -> Coupon | None:
        result = await self.db.execute(
            select(Coupon).where(Coupon.coupon_code == coupon_code)
        )
        return result.scalar_one_or_none()

    async def find_by_code(self, coupon_code: str) -> Coupon:
        """
        쿠폰 코드로 쿠폰 조회

        Raises:
            CouponNotFoundException: 쿠폰이 없는 경우
        """
        coupon = await self.get(coupon_code)
        if coupon is None:
            raise CouponNotFoundException(coupon_code)
        return coupon

    async def find_latest_by_kind(self, kind: CouponKind) -> Coupon:
        """
        종류별 가장 최근에 발급된 쿠폰 조회 (현재 진행 중인 프로모션 찾기)

        Raises:
            CouponNotFoundException: 해당 종류의 쿠폰이 없는 경우
        """
        result = await self.db.execute(
            select(Coupon)
            .where(Coupon.kind == CouponKind(kind).value)
            .order_by(Coupon.issued_at.desc())
            .limit(1)
        )
        coupon = result.scalar_one_or_none()
        if coupon is None:
            raise CouponNotFoundException()
        return coupon

    async def exists(self, coupon_code: str) -> bool:
        result = await self.db.execute(
            select(Coupon.coupon_code).where(Coupon.coupon_code == coupon_code)
        )
        return result.first() is not None

    async def decrement_if_positive(self, coupon_code: str) -> bool:
        """
        잔여 수량 1 차감 (남아 있는 경우에만)

        단일 조건부 UPDATE로 수행하므로 동시 요청에서도 음수가 되거나
        발급 수량을 초과하지 않습니다.

        Returns:
            차감 성공 여부 (False면 소진)
        """
        result = await self.db.execute(
            update(Coupon)
            .where(Coupon.coupon_code == coupon_code, Coupon.issue_limit > 0)
            .values(issue_limit=Coupon.issue_limit - 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def find_by_codes(self, coupon_codes: Iterable[str]) -> Dict[str, Coupon]:
        """쿠폰 코드 목록으로 일괄 조회 (코드 → 쿠폰)"""
        codes = list(coupon_codes)
        if not codes:
            return {}

        result = await self.db.execute(
            select(Coupon).where(Coupon.coupon_code.in_(codes))
        )
        return {coupon.coupon_code: coupon for coupon in result.scalars().all()}
