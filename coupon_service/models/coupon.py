"""
쿠폰(Coupon) 모델

목적: 할인 쿠폰 템플릿 (할인 금액, 잔여 발급 수량, 유효 기간, 최소 주문 금액)
"""

from enum import Enum
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Integer,
    DateTime,
    Index,
    CheckConstraint,
)

from .base import Base


class CouponKind(str, Enum):
    """쿠폰 종류"""

    WELCOME = "WELCOME"  # 회원 가입 축하 쿠폰
    PROMOTION = "PROMOTION"  # 선착순 프로모션 쿠폰
    SUBSCRIPTION_TIER_A = "SUBSCRIPTION_TIER_A"  # 구독 결제 보상 (소액)
    SUBSCRIPTION_TIER_B = "SUBSCRIPTION_TIER_B"  # 구독 결제 보상 (고액)


class Coupon(Base):
    """
    쿠폰 모델

    발급 이후 issue_limit 외의 필드는 변경되지 않으며, 감사 목적으로 삭제하지 않습니다.
    """

    __tablename__ = "coupons"

    coupon_code = Column(String(20), primary_key=True)
    kind = Column(String(30), nullable=False)
    discount_amount = Column(BigInteger, nullable=False)
    issue_limit = Column(Integer, nullable=False, default=0)
    issued_at = Column(DateTime, nullable=False)
    expired_at = Column(DateTime, nullable=False)
    min_order_price = Column(BigInteger, nullable=False, default=0)

    # 제약 조건
    __table_args__ = (
        CheckConstraint(
            "discount_amount >= 0", name="check_discount_amount_non_negative"
        ),
        CheckConstraint("issue_limit >= 0", name="check_issue_limit_non_negative"),
        CheckConstraint(
            "min_order_price >= 0", name="check_min_order_price_non_negative"
        ),
        CheckConstraint("expired_at > issued_at", name="check_valid_date_range"),
        CheckConstraint(
            "kind IN ('WELCOME', 'PROMOTION', 'SUBSCRIPTION_TIER_A', 'SUBSCRIPTION_TIER_B')",
            name="check_coupon_kind",
        ),
        Index("idx_coupons_kind_issued_at", "kind", "issued_at"),
    )

    def __repr__(self):
        return (
            f"<Coupon(code={self.coupon_code}, kind={self.kind}, "
            f"issue_limit={self.issue_limit})>"
        )

    def is_sold_out(self) -> bool:
        """잔여 발급 수량 소진 여부"""
        return self.issue_limit <= 0
