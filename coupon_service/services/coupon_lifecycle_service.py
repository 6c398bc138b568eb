"""
쿠폰 생명주기 서비스

목적: 쿠폰 발급, 사용(차감), 롤백, 복구, 선착순 수령 처리

수령 내역 상태: AVAILABLE(is_use=False) ⇄ USED(is_use=True)
- deduct:   AVAILABLE → USED (검증 후, 동시 요청 중 하나만 성공)
- rollback: → AVAILABLE (보상 처리, 검증 없음)
- recover:  → USED (보상 처리, 검증 없음)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_service.config import Settings, get_settings
from coupon_service.models.coupon import Coupon, CouponKind
from coupon_service.models.coupon_receipt import CouponReceipt, ReceiptKey
from coupon_service.services.code_generator import CouponCodeGenerator
from coupon_service.services.coupon_validator import (
    CouponViolation,
    find_violation,
    is_valid_period,
)
from coupon_service.stores.coupon_store import CouponStore
from coupon_service.stores.receipt_store import ReceiptStore
from coupon_service.utils.clock import utcnow, to_naive_utc
from coupon_service.utils.exceptions import (
    AlreadyUsedCouponException,
    CouponCodeConflictException,
    CouponNotFoundException,
    DuplicateReceiptException,
    PromotionGrantConflictException,
    PromotionNotOpenException,
    ReceiptNotFoundException,
    SoldOutException,
)
from coupon_service.utils.logging import get_logger, audit_logger
from coupon_service.utils.prometheus_metrics import (
    coupon_issued_total,
    coupon_promotion_grants_total,
    coupon_usage_transitions_total,
    coupon_validation_failures_total,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class PromotionStatus:
    """프로모션 쿠폰 수령 사전 체크 결과"""

    is_open: bool
    is_sold_out: bool
    already_received: bool


class GrantOutcome(str, Enum):
    """선착순 쿠폰 수령 결과"""

    GRANTED = "granted"
    SOLD_OUT = "sold_out"
    DUPLICATE = "duplicate"  # 이미 수령함
    CONFLICT = "conflict"  # 일시적 경합, 재시도 가능


@dataclass(frozen=True)
class GrantResult:
    """선착순 쿠폰 수령 결과"""

    outcome: GrantOutcome
    coupon_code: str
    consumer_id: int
    remaining: Optional[int] = None

    @property
    def granted(self) -> bool:
        return self.outcome is GrantOutcome.GRANTED

    def raise_for_outcome(self) -> None:
        """
        수령 실패 결과를 도메인 예외로 변환

        Raises:
            SoldOutException: 소진
            DuplicateReceiptException: 이미 수령함
            PromotionGrantConflictException: 일시적 경합
        """
        if self.outcome is GrantOutcome.SOLD_OUT:
            raise SoldOutException()
        if self.outcome is GrantOutcome.DUPLICATE:
            raise DuplicateReceiptException(self.coupon_code)
        if self.outcome is GrantOutcome.CONFLICT:
            raise PromotionGrantConflictException()


class CouponLifecycleService:
    """쿠폰 생명주기 서비스"""

    def __init__(
        self,
        db_session: AsyncSession,
        code_generator: Optional[CouponCodeGenerator] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db_session
        self.coupons = CouponStore(db_session)
        self.receipts = ReceiptStore(db_session)
        self.code_generator = code_generator or CouponCodeGenerator()
        self.settings = settings or get_settings()
        self.clock = clock

    # ------------------------------------------------------------------
    # 사용 / 보상
    # ------------------------------------------------------------------

    async def deduct(
        self,
        consumer_id: int,
        coupon_code: str,
        order_amount: int,
        claimed_discount: int,
    ) -> CouponReceipt:
        """
        주문 시 쿠폰 사용 처리

        Args:
            consumer_id: 소비자 ID
            coupon_code: 쿠폰 코드
            order_amount: 총 주문 금액
            claimed_discount: 주문 서비스가 적용한 할인 금액

        Returns:
            사용 처리된 수령 내역

        Raises:
            CouponNotFoundException, ReceiptNotFoundException: 쿠폰 또는 수령 내역 없음
            CouponException: 검증 규칙 위반 (이미 사용, 만료, 금액 불일치, 최소 주문 금액 미달)
        """
        key = ReceiptKey(coupon_code, consumer_id)
        coupon = await self.coupons.find_by_code(coupon_code)
        receipt = await self.receipts.find_by_key(key)

        violation = find_violation(
            receipt, coupon, order_amount, claimed_discount, self.clock()
        )
        if violation is not None:
            self._record_violation(violation, consumer_id, coupon_code)
            raise violation.to_exception(coupon, claimed_discount)

        # 검증 이후 다른 요청이 먼저 사용했다면 변경되는 행이 없음
        if not await self.receipts.set_usage(key, True, expected=False):
            await self.db.rollback()
            self._record_violation(CouponViolation.ALREADY_USED, consumer_id, coupon_code)
            raise AlreadyUsedCouponException()

        await self.db.commit()
        await self.db.refresh(receipt)

        coupon_usage_transitions_total.labels(action="deduct").inc()
        audit_logger.log_event(
            "coupon.deduct",
            consumer_id=consumer_id,
            coupon_code=coupon_code,
            action="deduct",
            details={"order_amount": order_amount, "discount": claimed_discount},
        )
        return receipt

    async def rollback(self, consumer_id: int, coupon_code: str) -> CouponReceipt:
        """
        쿠폰 미사용 상태로 복구 (주문 실패, 주문 취소 시)

        만료 등 검증 규칙과 무관하게 항상 AVAILABLE로 되돌립니다.

        Raises:
            CouponNotFoundException, ReceiptNotFoundException: 정방향 처리가 없었던 경우
        """
        return await self._force_usage(consumer_id, coupon_code, False, "rollback")

    async def recover(self, consumer_id: int, coupon_code: str) -> CouponReceipt:
        """
        쿠폰 사용 상태로 복구 (주문 취소 실패 시)

        Raises:
            CouponNotFoundException, ReceiptNotFoundException: 정방향 처리가 없었던 경우
        """
        return await self._force_usage(consumer_id, coupon_code, True, "recover")

    async def _force_usage(
        self, consumer_id: int, coupon_code: str, is_use: bool, action: str
    ) -> CouponReceipt:
        key = ReceiptKey(coupon_code, consumer_id)
        try:
            await self.coupons.find_by_code(coupon_code)
            receipt = await self.receipts.find_by_key(key)
        except (CouponNotFoundException, ReceiptNotFoundException):
            logger.error(
                f"보상 처리 대상 수령 내역 없음: action={action}, "
                f"consumer_id={consumer_id}, coupon_code={coupon_code}"
            )
            raise

        await self.receipts.set_usage(key, is_use)
        await self.db.commit()
        await self.db.refresh(receipt)

        coupon_usage_transitions_total.labels(action=action).inc()
        audit_logger.log_event(
            f"coupon.{action}",
            consumer_id=consumer_id,
            coupon_code=coupon_code,
            action=action,
        )
        return receipt

    def _record_violation(
        self, violation: CouponViolation, consumer_id: int, coupon_code: str
    ) -> None:
        coupon_validation_failures_total.labels(violation=violation.value).inc()
        logger.warning(
            f"쿠폰 사용 검증 실패: violation={violation.value}, "
            f"consumer_id={consumer_id}, coupon_code={coupon_code}"
        )

    # ------------------------------------------------------------------
    # 발급
    # ------------------------------------------------------------------

    async def issue_welcome(self, consumer_id: int) -> Coupon:
        """
        회원 가입 WELCOME 쿠폰 발급 및 수령 처리

        Returns:
            발급된 쿠폰
        """
        now = self.clock()
        try:
            coupon = await self._issue_coupon(
                kind=CouponKind.WELCOME,
                discount_amount=self.settings.WELCOME_DISCOUNT_AMOUNT,
                min_order_price=self.settings.WELCOME_MIN_ORDER_PRICE,
                issued_at=now,
                valid_days=self.settings.WELCOME_COUPON_VALID_DAYS,
                consumer_id=consumer_id,
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise CouponCodeConflictException(self.settings.COUPON_CODE_MAX_ATTEMPTS) from e
        except Exception:
            await self.db.rollback()
            raise

        self._record_issued([coupon], consumer_id)
        logger.info(f"WELCOME 쿠폰 발급 완료: consumer_id={consumer_id}")
        return coupon

    async def issue_promotion_batch(self) -> Coupon:
        """
        선착순 PROMOTION 쿠폰 발급 (수령 내역은 수령 시 생성)

        Returns:
            발급된 프로모션 쿠폰 (issue_limit = 전체 수량)
        """
        now = self.clock()
        try:
            coupon = await self._issue_coupon(
                kind=CouponKind.PROMOTION,
                discount_amount=self.settings.PROMOTION_DISCOUNT_AMOUNT,
                min_order_price=self.settings.PROMOTION_MIN_ORDER_PRICE,
                issued_at=now,
                valid_days=self.settings.PROMOTION_COUPON_VALID_DAYS,
                issue_limit=self.settings.PROMOTION_ISSUE_LIMIT,
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise CouponCodeConflictException(self.settings.COUPON_CODE_MAX_ATTEMPTS) from e
        except Exception:
            await self.db.rollback()
            raise

        self._record_issued([coupon])
        logger.info(f"PROMOTION 쿠폰 발급 완료: issue_limit={coupon.issue_limit}")
        return coupon

    async def issue_subscription_reward(
        self, consumer_id: int, effective_at: datetime
    ) -> List[Coupon]:
        """
        구독 결제 완료 후 구독 전용 쿠폰 발급 및 수령 처리

        소액 쿠폰 N장과 고액 쿠폰 1장을 결제 완료 시각 기준으로 발급합니다.

        Args:
            consumer_id: 소비자 ID
            effective_at: 구독 결제 완료 시각

        Returns:
            발급된 쿠폰 목록
        """
        settings = self.settings
        issued_at = to_naive_utc(effective_at)
        issued: List[Coupon] = []

        try:
            for _ in range(settings.SUBSCRIPTION_SMALL_COUPON_COUNT):
                issued.append(
                    await self._issue_coupon(
                        kind=CouponKind.SUBSCRIPTION_TIER_A,
                        discount_amount=settings.SUBSCRIPTION_SMALL_DISCOUNT_AMOUNT,
                        min_order_price=settings.SUBSCRIPTION_SMALL_MIN_ORDER_PRICE,
                        issued_at=issued_at,
                        valid_days=settings.SUBSCRIPTION_COUPON_VALID_DAYS,
                        consumer_id=consumer_id,
                    )
                )

            issued.append(
                await self._issue_coupon(
                    kind=CouponKind.SUBSCRIPTION_TIER_B,
                    discount_amount=settings.SUBSCRIPTION_LARGE_DISCOUNT_AMOUNT,
                    min_order_price=settings.SUBSCRIPTION_LARGE_MIN_ORDER_PRICE,
                    issued_at=issued_at,
                    valid_days=settings.SUBSCRIPTION_COUPON_VALID_DAYS,
                    consumer_id=consumer_id,
                )
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise CouponCodeConflictException(settings.COUPON_CODE_MAX_ATTEMPTS) from e
        except Exception:
            await self.db.rollback()
            raise

        self._record_issued(issued, consumer_id)
        logger.info(
            f"구독 쿠폰 발급 완료: consumer_id={consumer_id}, count={len(issued)}"
        )
        return issued

    async def _issue_coupon(
        self,
        kind: CouponKind,
        discount_amount: int,
        min_order_price: int,
        issued_at: datetime,
        valid_days: int,
        issue_limit: int = 0,
        consumer_id: Optional[int] = None,
    ) -> Coupon:
        """쿠폰 생성 (consumer_id가 있으면 수령 내역도 생성). commit은 호출자가 수행"""
        coupon = Coupon(
            coupon_code=await self._new_coupon_code(),
            kind=kind.value,
            discount_amount=discount_amount,
            issue_limit=issue_limit,
            issued_at=issued_at,
            expired_at=issued_at + timedelta(days=valid_days),
            min_order_price=min_order_price,
        )
        await self.coupons.save(coupon)

        if consumer_id is not None:
            await self.receipts.save(
                CouponReceipt.available(coupon.coupon_code, consumer_id, issued_at)
            )

        return coupon

    def _record_issued(self, coupons: List[Coupon], consumer_id: Optional[int] = None) -> None:
        """commit된 발급 건에 대해서만 메트릭과 감사 로그를 남김"""
        for coupon in coupons:
            coupon_issued_total.labels(kind=coupon.kind).inc()
            audit_logger.log_event(
                f"coupon.issue.{coupon.kind.lower()}",
                consumer_id=consumer_id,
                coupon_code=coupon.coupon_code,
                action="issue",
                details={
                    "discount_amount": coupon.discount_amount,
                    "issue_limit": coupon.issue_limit,
                },
            )

    async def _new_coupon_code(self) -> str:
        """
        저장소에 없는 새 쿠폰 코드 생성

        Raises:
            CouponCodeConflictException: 재시도 횟수 안에 새 코드를 얻지 못한 경우
        """
        attempts = self.settings.COUPON_CODE_MAX_ATTEMPTS
        for _ in range(attempts):
            code = self.code_generator.generate()
            if not await self.coupons.exists(code):
                return code
            logger.warning("쿠폰 코드 충돌, 재생성합니다")

        raise CouponCodeConflictException(attempts)

    # ------------------------------------------------------------------
    # 선착순 프로모션
    # ------------------------------------------------------------------

    def is_promotion_open(self, now: datetime) -> bool:
        """
        프로모션 수령 가능 시간대 여부

        PROMOTION_WINDOW_ENABLED가 꺼져 있으면 항상 열려 있습니다.
        """
        if not self.settings.PROMOTION_WINDOW_ENABLED:
            return True

        local_hour = (now + timedelta(hours=self.settings.PROMOTION_UTC_OFFSET_HOURS)).hour
        return self.settings.PROMOTION_OPEN_HOUR <= local_hour < self.settings.PROMOTION_CLOSE_HOUR

    async def current_promotion(self) -> Optional[Coupon]:
        """가장 최근 발급된 프로모션 쿠폰"""
        try:
            return await self.coupons.find_latest_by_kind(CouponKind.PROMOTION)
        except CouponNotFoundException:
            return None

    async def precheck_promotion(self, consumer_id: int) -> PromotionStatus:
        """
        프로모션 쿠폰 수령 전 사전 체크

        Returns:
            PromotionStatus(진행 여부, 소진 여부, 이미 수령 여부)
        """
        now = self.clock()
        promotion = await self.current_promotion()
        if promotion is None:
            return PromotionStatus(is_open=False, is_sold_out=False, already_received=False)

        receipt = await self.receipts.get(ReceiptKey(promotion.coupon_code, consumer_id))
        return PromotionStatus(
            is_open=self.is_promotion_open(now)
            and is_valid_period(promotion.expired_at, now),
            is_sold_out=promotion.is_sold_out(),
            already_received=receipt is not None,
        )

    async def grant_promotion_unit(
        self, consumer_id: int, coupon: Optional[Coupon] = None
    ) -> GrantResult:
        """
        선착순 쿠폰 1장 수령 (잔여 수량 차감 + 수령 내역 생성을 하나의 트랜잭션으로)

        수령에 실패하면 트랜잭션 전체를 롤백하므로 수령 내역 없이 수량만 줄어드는 일은 없습니다.
        실패 결과는 자동으로 재시도하지 않습니다.

        Args:
            consumer_id: 소비자 ID
            coupon: 대상 프로모션 쿠폰 (없으면 현재 진행 중인 프로모션)

        Returns:
            GrantResult (GRANTED, SOLD_OUT, DUPLICATE, CONFLICT)

        Raises:
            PromotionNotOpenException: 진행 중인 프로모션이 없거나, 수령 가능 시간이 아니거나,
                프로모션 쿠폰이 만료된 경우
        """
        now = self.clock()
        if coupon is None:
            coupon = await self.current_promotion()
        if (
            coupon is None
            or not self.is_promotion_open(now)
            or not is_valid_period(coupon.expired_at, now)
        ):
            raise PromotionNotOpenException()

        coupon_code = coupon.coupon_code
        key = ReceiptKey(coupon_code, consumer_id)
        remaining = None

        try:
            if await self.receipts.get(key) is not None:
                outcome = GrantOutcome.DUPLICATE
            elif not await self.coupons.decrement_if_positive(coupon_code):
                outcome = GrantOutcome.SOLD_OUT
            else:
                await self.receipts.save(CouponReceipt.available(coupon_code, consumer_id, now))
                await self.db.commit()
                outcome = GrantOutcome.GRANTED
        except (DuplicateReceiptException, IntegrityError):
            outcome = GrantOutcome.DUPLICATE
        except DBAPIError as e:
            logger.warning(
                f"선착순 쿠폰 수령 경합: consumer_id={consumer_id}, error={e.orig!r}"
            )
            outcome = GrantOutcome.CONFLICT

        if outcome is GrantOutcome.GRANTED:
            refreshed = await self.coupons.get(coupon_code)
            await self.db.refresh(refreshed)
            remaining = refreshed.issue_limit
            audit_logger.log_event(
                "coupon.promotion.grant",
                consumer_id=consumer_id,
                coupon_code=coupon_code,
                action="grant",
                details={"remaining": remaining},
            )
        else:
            await self.db.rollback()
            logger.info(
                f"선착순 쿠폰 미수령: outcome={outcome.value}, consumer_id={consumer_id}"
            )

        coupon_promotion_grants_total.labels(outcome=outcome.value).inc()
        return GrantResult(
            outcome=outcome,
            coupon_code=coupon_code,
            consumer_id=consumer_id,
            remaining=remaining,
        )
