"""
쿠폰 API 요청/응답 스키마

내부 API (주문/결제/구독 서비스 호출)와 공개 API (소비자) 스키마를 함께 정의합니다.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional


# ----------------------------------------------------------------------
# 내부 API (서비스 간 호출)
# ----------------------------------------------------------------------


class WelcomeCouponRequest(BaseModel):
    """회원 가입 쿠폰 발급 요청"""

    consumer_id: int = Field(..., description="소비자 ID", gt=0)


class InternalResponse(BaseModel):
    """
    서비스 간 호출 응답

    도메인 오류도 code=200으로 응답하고 failure에 실패 사유를 담습니다.
    """

    code: int = Field(200, description="응답 코드")
    message: Optional[str] = Field(None, description="메시지")
    data: Optional[Any] = Field(None, description="응답 데이터")
    failure: Optional[str] = Field(None, description="실패 사유 코드")


# ----------------------------------------------------------------------
# 공개 API (소비자)
# ----------------------------------------------------------------------


class CouponItem(BaseModel):
    """쿠폰 항목"""

    model_config = ConfigDict(from_attributes=True)

    coupon_code: str = Field(..., description="쿠폰 코드")
    kind: str = Field(..., description="쿠폰 종류")
    discount_amount: int = Field(..., description="할인 금액")
    expired_at: datetime = Field(..., description="만료일")
    min_order_price: int = Field(..., description="최소 주문 금액")


class CouponPageResponse(BaseModel):
    """쿠폰 내역 페이지 응답"""

    content: List[CouponItem] = Field(..., description="쿠폰 목록")
    page: int = Field(..., description="페이지 번호 (0부터 시작)")
    size: int = Field(..., description="페이지 크기")
    total_elements: int = Field(..., description="전체 쿠폰 수")
    total_pages: int = Field(..., description="전체 페이지 수")


class AvailableCouponsRequest(BaseModel):
    """주문 시 사용 가능 쿠폰 조회 요청"""

    total_amount: int = Field(..., description="총 주문 금액", ge=0)


class AvailableCouponsResponse(BaseModel):
    """주문 시 사용 가능 쿠폰 응답"""

    count: int = Field(..., description="사용 가능한 쿠폰 수")
    coupons: List[CouponItem] = Field(..., description="사용 가능한 쿠폰 목록")


class SubscriptionBenefitResponse(BaseModel):
    """구독 누적 혜택 응답"""

    total_benefit: int = Field(..., description="사용한 쿠폰 할인 금액 합계")


class PromotionStatusResponse(BaseModel):
    """프로모션 쿠폰 수령 사전 체크 응답"""

    model_config = ConfigDict(from_attributes=True)

    is_open: bool = Field(..., description="이벤트 진행 여부")
    is_sold_out: bool = Field(..., description="소진 여부")
    already_received: bool = Field(..., description="이미 수령 여부")


class PromotionReceiveResponse(BaseModel):
    """프로모션 쿠폰 수령 응답"""

    coupon_code: str = Field(..., description="수령한 쿠폰 코드")
    remaining: Optional[int] = Field(None, description="남은 수량")
    message: str = Field(..., description="응답 메시지")
