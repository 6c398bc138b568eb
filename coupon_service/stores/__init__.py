"""
저장소 패키지

쿠폰과 수령 내역의 영속화를 담당합니다.
"""

from .coupon_store import CouponStore
from .receipt_store import ReceiptStore

__all__ = ["CouponStore", "ReceiptStore"]
