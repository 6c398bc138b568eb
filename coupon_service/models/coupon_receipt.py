"""
쿠폰 수령 내역(CouponReceipt) 모델

목적: 소비자가 보유한 쿠폰과 사용 여부
"""

from dataclasses import dataclass
from datetime import datetime
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
)

from .base import Base
from coupon_service.utils.clock import utcnow


@dataclass(frozen=True)
class ReceiptKey:
    """수령 내역 식별자 (쿠폰 코드 + 소비자 ID)"""

    coupon_code: str
    consumer_id: int


class CouponReceipt(Base):
    """
    쿠폰 수령 내역 모델

    (coupon_code, consumer_id) 복합 기본 키로 소비자당 쿠폰 1장만 보유할 수 있습니다.
    쿠폰은 객체 참조가 아니라 코드로 연결됩니다.
    """

    __tablename__ = "coupon_receipts"

    coupon_code = Column(
        String(20),
        ForeignKey("coupons.coupon_code", ondelete="RESTRICT"),
        primary_key=True,
    )
    consumer_id = Column(BigInteger, primary_key=True, autoincrement=False)
    is_use = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_coupon_receipts_consumer_use", "consumer_id", "is_use"),
        Index("idx_coupon_receipts_consumer_created", "consumer_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<CouponReceipt(coupon_code={self.coupon_code}, "
            f"consumer_id={self.consumer_id}, is_use={self.is_use})>"
        )

    @classmethod
    def available(
        cls, coupon_code: str, consumer_id: int, created_at: datetime = None
    ) -> "CouponReceipt":
        """미사용(AVAILABLE) 상태의 수령 내역 생성"""
        return cls(
            coupon_code=coupon_code,
            consumer_id=consumer_id,
            is_use=False,
            created_at=created_at or utcnow(),
        )

    def is_available(self) -> bool:
        """미사용 상태 여부"""
        return not self.is_use
