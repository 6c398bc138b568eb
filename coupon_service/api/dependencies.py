"""
API 공통 의존성

인증은 API 게이트웨이에서 처리하고, 소비자 ID는 X-Member-Id 헤더로 전달받습니다.
"""

from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_service.models.base import get_db
from coupon_service.services.coupon_lifecycle_service import CouponLifecycleService
from coupon_service.services.coupon_query_service import CouponQueryService
from coupon_service.services.coupon_service import CouponService
from coupon_service.utils.exceptions import UnauthorizedException


async def get_consumer_id(
    x_member_id: Optional[str] = Header(None, alias="X-Member-Id"),
) -> int:
    """
    게이트웨이가 전달한 소비자 ID

    Raises:
        UnauthorizedException: 헤더가 없거나 올바른 ID가 아닌 경우
    """
    if x_member_id is None or not x_member_id.isdigit() or int(x_member_id) <= 0:
        raise UnauthorizedException("소비자 정보가 없습니다.")
    return int(x_member_id)


def get_coupon_service(db: AsyncSession = Depends(get_db)) -> CouponService:
    return CouponService(db, lifecycle=CouponLifecycleService(db))


def get_query_service(db: AsyncSession = Depends(get_db)) -> CouponQueryService:
    return CouponQueryService(db)
