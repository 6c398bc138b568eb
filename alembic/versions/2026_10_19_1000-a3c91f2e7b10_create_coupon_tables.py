"""create coupon tables

Revision ID: a3c91f2e7b10
Revises:
Create Date: 2026-10-19 10:00:00.000000+09:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a3c91f2e7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """마이그레이션 적용 (업그레이드)"""
    # Coupons 테이블 생성
    op.create_table(
        'coupons',
        sa.Column('coupon_code', sa.String(20), nullable=False),
        sa.Column('kind', sa.String(30), nullable=False),
        sa.Column('discount_amount', sa.BigInteger(), nullable=False),
        sa.Column('issue_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('issued_at', sa.DateTime(), nullable=False),
        sa.Column('expired_at', sa.DateTime(), nullable=False),
        sa.Column('min_order_price', sa.BigInteger(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('coupon_code', name='pk_coupons'),
        sa.CheckConstraint('discount_amount >= 0', name='ck_coupons_check_discount_amount_non_negative'),
        sa.CheckConstraint('issue_limit >= 0', name='ck_coupons_check_issue_limit_non_negative'),
        sa.CheckConstraint('min_order_price >= 0', name='ck_coupons_check_min_order_price_non_negative'),
        sa.CheckConstraint('expired_at > issued_at', name='ck_coupons_check_valid_date_range'),
        sa.CheckConstraint(
            "kind IN ('WELCOME', 'PROMOTION', 'SUBSCRIPTION_TIER_A', 'SUBSCRIPTION_TIER_B')",
            name='ck_coupons_check_coupon_kind',
        ),
    )
    op.create_index('idx_coupons_kind_issued_at', 'coupons', ['kind', 'issued_at'])

    # Coupon Receipts 테이블 생성
    op.create_table(
        'coupon_receipts',
        sa.Column('coupon_code', sa.String(20), nullable=False),
        sa.Column('consumer_id', sa.BigInteger(), nullable=False, autoincrement=False),
        sa.Column('is_use', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('coupon_code', 'consumer_id', name='pk_coupon_receipts'),
        sa.ForeignKeyConstraint(
            ['coupon_code'], ['coupons.coupon_code'],
            name='fk_coupon_receipts_coupon_code_coupons',
            ondelete='RESTRICT',
        ),
    )
    op.create_index('idx_coupon_receipts_consumer_use', 'coupon_receipts', ['consumer_id', 'is_use'])
    op.create_index('idx_coupon_receipts_consumer_created', 'coupon_receipts', ['consumer_id', 'created_at'])


def downgrade() -> None:
    """마이그레이션 되돌리기 (다운그레이드)"""
    op.drop_index('idx_coupon_receipts_consumer_created', table_name='coupon_receipts')
    op.drop_index('idx_coupon_receipts_consumer_use', table_name='coupon_receipts')
    op.drop_table('coupon_receipts')
    op.drop_index('idx_coupons_kind_issued_at', table_name='coupons')
    op.drop_table('coupons')
