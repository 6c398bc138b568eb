"""
쿠폰 API 엔드포인트

소비자 쿠폰 내역 조회, 주문 시 사용 가능 쿠폰 조회, 선착순 쿠폰 수령 기능을 제공합니다.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from coupon_service.services.coupon_query_service import CouponQueryService
from coupon_service.services.coupon_service import CouponService
from coupon_service.api.dependencies import (
    get_consumer_id,
    get_coupon_service,
    get_query_service,
)
from coupon_service.api.schemas.coupon_schemas import (
    AvailableCouponsRequest,
    AvailableCouponsResponse,
    CouponItem,
    CouponPageResponse,
    PromotionReceiveResponse,
    PromotionStatusResponse,
    SubscriptionBenefitResponse,
)

router = APIRouter(prefix="/v1/coupons", tags=["coupons"])


@router.get("/me", response_model=CouponPageResponse)
async def get_my_coupons(
    search: Optional[str] = Query(
        None,
        description="조회 구분 (available: 사용 가능, used: 사용 완료 또는 만료)",
    ),
    page: int = Query(0, ge=0, description="페이지 번호 (0부터 시작)"),
    size: int = Query(10, ge=1, le=100, description="페이지 크기"),
    consumer_id: int = Depends(get_consumer_id),
    service: CouponQueryService = Depends(get_query_service),
):
    """
    내 쿠폰 내역 조회 (수령일 최신순)

    **조회 구분**:
    - `available`: 미사용이면서 유효 기간 내인 쿠폰
    - `used`: 사용했거나 만료된 쿠폰
    - 그 외: 빈 목록
    """
    result = await service.get_my_coupons(
        consumer_id=consumer_id,
        page=page,
        size=size,
        search=search,
    )

    return CouponPageResponse(
        content=[CouponItem.model_validate(c) for c in result.content],
        page=result.page,
        size=result.size,
        total_elements=result.total_elements,
        total_pages=result.total_pages,
    )


@router.post("/available", response_model=AvailableCouponsResponse)
async def get_available_coupons_for_order(
    request: AvailableCouponsRequest,
    consumer_id: int = Depends(get_consumer_id),
    service: CouponQueryService = Depends(get_query_service),
):
    """주문 금액으로 사용 가능한 쿠폰 조회"""
    result = await service.get_available_coupons_for_order(
        consumer_id=consumer_id,
        total_amount=request.total_amount,
    )

    return AvailableCouponsResponse(
        count=result.count,
        coupons=[CouponItem.model_validate(c) for c in result.coupons],
    )


@router.get("/benefit", response_model=SubscriptionBenefitResponse)
async def get_subscription_benefit(
    consumer_id: int = Depends(get_consumer_id),
    service: CouponQueryService = Depends(get_query_service),
):
    """구독 쿠폰 누적 혜택 (사용한 쿠폰 할인 금액 합계)"""
    total = await service.get_subscription_benefit(consumer_id)
    return SubscriptionBenefitResponse(total_benefit=total)


@router.get("/promotion/status", response_model=PromotionStatusResponse)
async def precheck_promotion_receipt(
    consumer_id: int = Depends(get_consumer_id),
    service: CouponService = Depends(get_coupon_service),
):
    """선착순 쿠폰 수령 전 사전 체크 (진행 여부, 소진 여부, 이미 수령 여부)"""
    status = await service.precheck_promotion_receipt(consumer_id)
    return PromotionStatusResponse.model_validate(status)


@router.post("/promotion/receive", response_model=PromotionReceiveResponse)
async def receive_promotion_coupon(
    consumer_id: int = Depends(get_consumer_id),
    service: CouponService = Depends(get_coupon_service),
):
    """
    선착순 쿠폰 수령

    **오류 케이스**:
    - `409`: 소진됨, 이미 수령함, 일시적 경합 (재시도 가능)
    - `422`: 진행 중인 이벤트 없음
    """
    result = await service.grant_promotion_unit(consumer_id)
    result.raise_for_outcome()

    return PromotionReceiveResponse(
        coupon_code=result.coupon_code,
        remaining=result.remaining,
        message="쿠폰을 수령했습니다",
    )
