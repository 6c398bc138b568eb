"""
쿠폰 서비스 호출 정보

주문/결제/구독 서비스가 쿠폰 서비스에 전달하는 정보입니다.
내부 API 요청 본문으로도 그대로 사용합니다.
"""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional


class OrderInfo(BaseModel):
    """주문 쿠폰 정보 (차감, 롤백)"""

    consumer_id: int = Field(..., description="소비자 ID", gt=0)
    coupon_code: Optional[str] = Field(
        None, description="쿠폰 코드 (없으면 쿠폰 미사용 주문)", max_length=20
    )
    coupon_amount: int = Field(0, description="주문 서비스가 적용한 할인 금액", ge=0)
    total_amount: int = Field(..., description="총 주문 금액", ge=0)


class OrderCancelInfo(BaseModel):
    """주문 취소 쿠폰 정보 (환불, 복구)"""

    consumer_id: int = Field(..., description="소비자 ID", gt=0)
    coupon_code: Optional[str] = Field(
        None, description="쿠폰 코드 (없으면 쿠폰 미사용 주문)", max_length=20
    )
    coupon_amount: int = Field(0, description="할인 금액", ge=0)
    total_amount: int = Field(0, description="총 주문 금액", ge=0)


class SubscriptionPaymentInfo(BaseModel):
    """구독 결제 완료 정보"""

    consumer_id: int = Field(..., description="소비자 ID", gt=0)
    successed_at: datetime = Field(..., description="구독 결제 완료 시각")
