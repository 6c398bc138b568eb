"""
Integration Tests: 쿠폰 생명주기 (발급, 사용, 롤백, 복구)
"""

import asyncio
import logging
import pytest
from collections import Counter
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_service.models.coupon import Coupon, CouponKind
from coupon_service.models.coupon_receipt import CouponReceipt, ReceiptKey
from coupon_service.services.coupon_lifecycle_service import CouponLifecycleService
from coupon_service.services.coupon_requests import OrderCancelInfo, OrderInfo
from coupon_service.services.coupon_service import CouponService
from coupon_service.stores.coupon_store import CouponStore
from coupon_service.stores.receipt_store import ReceiptStore
from coupon_service.utils.exceptions import (
    AlreadyUsedCouponException,
    CouponCodeConflictException,
    CouponExpiredException,
    CouponNotFoundException,
    DiscountAmountMismatchException,
    InsufficientOrderAmountException,
    ReceiptNotFoundException,
)
from coupon_service.utils.prometheus_metrics import registry
from tests.conftest import FIXED_NOW, fixed_clock


CODE = "aB3d-Ef9H-1jKl-Mn"
CONSUMER_ID = 1001


class StubCodeGenerator:
    """미리 정한 코드를 순서대로 반환"""

    def __init__(self, codes):
        self.codes = iter(codes)

    def generate(self) -> str:
        return next(self.codes)


@pytest.mark.asyncio
class TestDeduct:
    """쿠폰 사용 처리 테스트"""

    async def test_deduct_marks_receipt_used(
        self, lifecycle_service: CouponLifecycleService, make_coupon
    ):
        await make_coupon(CODE, consumer_id=CONSUMER_ID)

        receipt = await lifecycle_service.deduct(CONSUMER_ID, CODE, 10000, 1000)

        assert receipt.is_use is True

    async def test_deduct_twice_fails_with_already_used(
        self, lifecycle_service: CouponLifecycleService, make_coupon
    ):
        """두 번째 사용은 AlreadyUsedCoupon"""
        await make_coupon(CODE, consumer_id=CONSUMER_ID)

        await lifecycle_service.deduct(CONSUMER_ID, CODE, 10000, 1000)

        with pytest.raises(AlreadyUsedCouponException):
            await lifecycle_service.deduct(CONSUMER_ID, CODE, 10000, 1000)

    async def test_deduct_below_min_order_price(
        self, lifecycle_service: CouponLifecycleService, make_coupon
    ):
        """주문 9999원은 실패, 10000원은 성공 (최소 주문 금액 10000원)"""
        await make_coupon(CODE, min_order_price=10000, consumer_id=CONSUMER_ID)

        with pytest.raises(InsufficientOrderAmountException):
            await lifecycle_service.deduct(CONSUMER_ID, CODE, 9999, 1000)

        receipt = await lifecycle_service.deduct(CONSUMER_ID, CODE, 10000, 1000)
        assert receipt.is_use is True

    async def test_failed_validation_does_not_change_state(
        self, lifecycle_service: CouponLifecycleService, make_coupon, db_session: AsyncSession
    ):
        await make_coupon(CODE, discount_amount=1000, consumer_id=CONSUMER_ID)

        with pytest.raises(DiscountAmountMismatchException):
            await lifecycle_service.deduct(CONSUMER_ID, CODE, 10000, 2000)

        receipt = await ReceiptStore(db_session).find_by_key(ReceiptKey(CODE, CONSUMER_ID))
        assert receipt.is_use is False

    async def test_deduct_expired_coupon(
        self, lifecycle_service: CouponLifecycleService, make_coupon
    ):
        """만료 시각과 현재 시각이 같으면 만료"""
        await make_coupon(
            CODE,
            issued_at=FIXED_NOW - timedelta(days=30),
            expired_at=FIXED_NOW,
            consumer_id=CONSUMER_ID,
        )

        with pytest.raises(CouponExpiredException):
            await lifecycle_service.deduct(CONSUMER_ID, CODE, 10000, 1000)

    async def test_deduct_unknown_coupon(self, lifecycle_service: CouponLifecycleService):
        with pytest.raises(CouponNotFoundException):
            await lifecycle_service.deduct(CONSUMER_ID, "none-none-none-no", 10000, 1000)

    async def test_deduct_without_receipt(
        self, lifecycle_service: CouponLifecycleService, make_coupon
    ):
        """다른 소비자의 쿠폰은 사용할 수 없음"""
        await make_coupon(CODE, consumer_id=CONSUMER_ID)

        with pytest.raises(ReceiptNotFoundException):
            await lifecycle_service.deduct(2002, CODE, 10000, 1000)

    async def test_deduct_loses_to_earlier_usage(
        self,
        lifecycle_service: CouponLifecycleService,
        make_coupon,
        db_session: AsyncSession,
    ):
        """검증 시점에는 미사용이었지만 그 사이 다른 요청이 먼저 사용한 경우"""
        await make_coupon(CODE, consumer_id=CONSUMER_ID, is_use=True)
        stale = CouponReceipt.available(CODE, CONSUMER_ID, FIXED_NOW)

        with patch.object(
            lifecycle_service.receipts, "find_by_key", AsyncMock(return_value=stale)
        ):
            with pytest.raises(AlreadyUsedCouponException):
                await lifecycle_service.deduct(CONSUMER_ID, CODE, 10000, 1000)

        receipt = await ReceiptStore(db_session).find_by_key(ReceiptKey(CODE, CONSUMER_ID))
        assert receipt.is_use is True


@pytest.mark.asyncio
@pytest.mark.concurrency
class TestConcurrentDeduct:
    """동일 수령 내역에 대한 동시 사용 요청 테스트"""

    async def test_only_one_deduct_succeeds(self, file_session_factory, test_settings):
        """동시 요청 6건 → 1건만 사용 처리, 나머지는 AlreadyUsedCoupon"""
        requests = 6

        async with file_session_factory() as session:
            session.add(
                Coupon(
                    coupon_code=CODE,
                    kind=CouponKind.WELCOME.value,
                    discount_amount=1000,
                    issue_limit=0,
                    issued_at=FIXED_NOW - timedelta(days=1),
                    expired_at=FIXED_NOW + timedelta(days=29),
                    min_order_price=10000,
                )
            )
            session.add(CouponReceipt.available(CODE, CONSUMER_ID, FIXED_NOW - timedelta(days=1)))
            await session.commit()

        async def deduct():
            async with file_session_factory() as session:
                service = CouponLifecycleService(
                    session, settings=test_settings, clock=fixed_clock()
                )
                return await service.deduct(CONSUMER_ID, CODE, 10000, 1000)

        results = await asyncio.gather(
            *(deduct() for _ in range(requests)), return_exceptions=True
        )

        succeeded = [r for r in results if not isinstance(r, BaseException)]
        rejected = [r for r in results if isinstance(r, BaseException)]
        assert len(succeeded) == 1
        assert len(rejected) == requests - 1
        assert all(isinstance(e, AlreadyUsedCouponException) for e in rejected)

        async with file_session_factory() as session:
            receipt = await ReceiptStore(session).find_by_key(ReceiptKey(CODE, CONSUMER_ID))

        assert receipt.is_use is True


@pytest.mark.asyncio
class TestCompensation:
    """보상 처리 (롤백, 복구) 테스트"""

    async def test_deduct_then_rollback_restores_available(
        self, lifecycle_service: CouponLifecycleService, make_coupon
    ):
        await make_coupon(CODE, consumer_id=CONSUMER_ID)

        await lifecycle_service.deduct(CONSUMER_ID, CODE, 10000, 1000)
        receipt = await lifecycle_service.rollback(CONSUMER_ID, CODE)

        assert receipt.is_use is False
        assert receipt.is_available()

        # 롤백 후 다시 사용 가능
        receipt = await lifecycle_service.deduct(CONSUMER_ID, CODE, 10000, 1000)
        assert receipt.is_use is True

    async def test_rollback_expired_coupon(
        self, lifecycle_service: CouponLifecycleService, make_coupon
    ):
        """만료된 쿠폰도 검증 없이 롤백"""
        await make_coupon(
            CODE,
            issued_at=FIXED_NOW - timedelta(days=30),
            expired_at=FIXED_NOW - timedelta(days=1),
            consumer_id=CONSUMER_ID,
            is_use=True,
        )

        receipt = await lifecycle_service.rollback(CONSUMER_ID, CODE)

        assert receipt.is_use is False

    async def test_recover_marks_used_again(
        self, lifecycle_service: CouponLifecycleService, make_coupon
    ):
        """주문 취소(환불) 후 취소 실패 시 다시 사용 상태로"""
        await make_coupon(CODE, consumer_id=CONSUMER_ID, is_use=True)

        await lifecycle_service.rollback(CONSUMER_ID, CODE)
        receipt = await lifecycle_service.recover(CONSUMER_ID, CODE)

        assert receipt.is_use is True

    async def test_rollback_without_receipt(
        self, lifecycle_service: CouponLifecycleService, make_coupon
    ):
        await make_coupon(CODE)

        with pytest.raises(ReceiptNotFoundException):
            await lifecycle_service.rollback(CONSUMER_ID, CODE)

    async def test_recover_unknown_coupon(self, lifecycle_service: CouponLifecycleService):
        with pytest.raises(CouponNotFoundException):
            await lifecycle_service.recover(CONSUMER_ID, CODE)


@pytest.mark.asyncio
class TestCouponServiceEntry:
    """서비스 간 호출 진입점 테스트"""

    async def test_deduct_with_order_info(
        self, lifecycle_service: CouponLifecycleService, make_coupon
    ):
        await make_coupon(CODE, consumer_id=CONSUMER_ID)
        service = CouponService(lifecycle_service.db, lifecycle=lifecycle_service)

        receipt = await service.deduct_coupon(
            OrderInfo(
                consumer_id=CONSUMER_ID,
                coupon_code=CODE,
                coupon_amount=1000,
                total_amount=10000,
            )
        )

        assert receipt.is_use is True

    async def test_order_without_coupon_is_ignored(
        self, lifecycle_service: CouponLifecycleService
    ):
        service = CouponService(lifecycle_service.db, lifecycle=lifecycle_service)

        assert await service.deduct_coupon(
            OrderInfo(consumer_id=CONSUMER_ID, total_amount=10000)
        ) is None
        assert await service.refund_coupon_by_order_cancel(
            OrderCancelInfo(consumer_id=CONSUMER_ID)
        ) is None

    async def test_refund_then_recover(
        self, lifecycle_service: CouponLifecycleService, make_coupon
    ):
        """주문 취소 → 환불(미사용), 취소 실패 → 복구(사용)"""
        await make_coupon(CODE, consumer_id=CONSUMER_ID, is_use=True)
        service = CouponService(lifecycle_service.db, lifecycle=lifecycle_service)
        cancel_info = OrderCancelInfo(consumer_id=CONSUMER_ID, coupon_code=CODE)

        refunded = await service.refund_coupon_by_order_cancel(cancel_info)
        assert refunded.is_use is False

        recovered = await service.recover_coupon_by_failed_order_cancel(cancel_info)
        assert recovered.is_use is True


@pytest.mark.asyncio
class TestIssuance:
    """쿠폰 발급 테스트"""

    async def test_issue_welcome(
        self, lifecycle_service: CouponLifecycleService, db_session: AsyncSession
    ):
        coupon = await lifecycle_service.issue_welcome(CONSUMER_ID)

        assert coupon.kind == CouponKind.WELCOME.value
        assert coupon.discount_amount == 3000
        assert coupon.min_order_price == 10000
        assert coupon.issue_limit == 0
        assert coupon.issued_at == FIXED_NOW
        assert coupon.expired_at == FIXED_NOW + timedelta(days=30)

        receipt = await ReceiptStore(db_session).find_by_key(
            ReceiptKey(coupon.coupon_code, CONSUMER_ID)
        )
        assert receipt.is_use is False

    async def test_subscription_reward_issues_six_coupons(
        self, lifecycle_service: CouponLifecycleService, db_session: AsyncSession
    ):
        """구독 결제 1건 → 소액 5장 + 고액 1장, 수령 내역 6건 모두 미사용"""
        effective_at = datetime(2026, 3, 1, 0, 0, tzinfo=timezone.utc)

        coupons = await lifecycle_service.issue_subscription_reward(CONSUMER_ID, effective_at)

        assert len(coupons) == 6
        assert len({c.coupon_code for c in coupons}) == 6
        assert Counter(c.kind for c in coupons) == {
            CouponKind.SUBSCRIPTION_TIER_A.value: 5,
            CouponKind.SUBSCRIPTION_TIER_B.value: 1,
        }
        for coupon in coupons:
            assert coupon.issued_at == datetime(2026, 3, 1, 0, 0)
            if coupon.kind == CouponKind.SUBSCRIPTION_TIER_A.value:
                assert (coupon.discount_amount, coupon.min_order_price) == (1000, 10000)
            else:
                assert (coupon.discount_amount, coupon.min_order_price) == (5000, 20000)

        receipts = await ReceiptStore(db_session).find_by_consumer(CONSUMER_ID)
        assert len(receipts) == 6
        assert all(not r.is_use for r in receipts)

    async def test_issue_promotion_batch(self, lifecycle_service: CouponLifecycleService):
        coupon = await lifecycle_service.issue_promotion_batch()

        assert coupon.kind == CouponKind.PROMOTION.value
        assert coupon.issue_limit == 100
        assert coupon.expired_at == FIXED_NOW + timedelta(days=7)

    async def test_code_collision_is_retried(
        self, db_session: AsyncSession, test_settings, make_coupon
    ):
        """이미 있는 코드가 생성되면 새 코드로 재시도"""
        await make_coupon("Dup1-Dup1-Dup1-D1")
        service = CouponLifecycleService(
            db_session,
            code_generator=StubCodeGenerator(["Dup1-Dup1-Dup1-D1", "New1-New1-New1-N1"]),
            settings=test_settings,
            clock=fixed_clock(),
        )

        coupon = await service.issue_welcome(CONSUMER_ID)

        assert coupon.coupon_code == "New1-New1-New1-N1"

    async def test_code_collision_exhausts_attempts(
        self, db_session: AsyncSession, test_settings, make_coupon
    ):
        await make_coupon("Dup1-Dup1-Dup1-D1")
        service = CouponLifecycleService(
            db_session,
            code_generator=StubCodeGenerator(["Dup1-Dup1-Dup1-D1"] * 5),
            settings=test_settings,
            clock=fixed_clock(),
        )

        with pytest.raises(CouponCodeConflictException) as exc_info:
            await service.issue_welcome(CONSUMER_ID)

        assert exc_info.value.retryable is True
        assert len(await ReceiptStore(db_session).find_by_consumer(CONSUMER_ID)) == 0
        assert await CouponStore(db_session).exists("Dup1-Dup1-Dup1-D1")

    async def test_issued_metric_counts_committed_coupons(
        self, lifecycle_service: CouponLifecycleService
    ):
        before = _issued_count(CouponKind.WELCOME)

        await lifecycle_service.issue_welcome(CONSUMER_ID)

        assert _issued_count(CouponKind.WELCOME) == before + 1

    async def test_failed_commit_is_not_recorded_as_issued(
        self,
        lifecycle_service: CouponLifecycleService,
        db_session: AsyncSession,
        caplog,
    ):
        """commit에 실패한 발급은 메트릭과 감사 로그에 남지 않음"""
        before = _issued_count(CouponKind.WELCOME)
        conflict = IntegrityError(
            "INSERT INTO coupons", {}, Exception("UNIQUE constraint failed")
        )

        with patch.object(lifecycle_service.db, "commit", AsyncMock(side_effect=conflict)):
            with caplog.at_level(logging.INFO, logger="audit"):
                with pytest.raises(CouponCodeConflictException):
                    await lifecycle_service.issue_welcome(CONSUMER_ID)

        assert _issued_count(CouponKind.WELCOME) == before
        assert "coupon.issue.welcome" not in caplog.text
        assert len(await ReceiptStore(db_session).find_by_consumer(CONSUMER_ID)) == 0


def _issued_count(kind: CouponKind) -> float:
    value = registry.get_sample_value("coupon_issued_total", {"kind": kind.value})
    return value or 0.0
