"""
데이터베이스 모델 패키지

새로운 모델을 추가할 때는 이 파일에서 import하여 Alembic이 자동으로 감지할 수 있도록 합니다.
"""

from .base import Base, get_db, init_db, drop_db, close_db
from .coupon import Coupon, CouponKind
from .coupon_receipt import CouponReceipt, ReceiptKey

__all__ = [
    "Base",
    "get_db",
    "init_db",
    "drop_db",
    "close_db",
    "Coupon",
    "CouponKind",
    "CouponReceipt",
    "ReceiptKey",
]
