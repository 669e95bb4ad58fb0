"""Checkout Orchestrator — cart snapshot, pricing, one charge, order materialization.

Invariants:
    - Steps run AuthCheck -> Snapshot -> Price -> Charge -> Materialize, never reordered
    - At most one pending attempt per user (claim row); a second concurrent
      checkout gets ConcurrentCheckoutConflictError before touching the cart
    - No DB transaction is open while the processor call is in flight
    - The processor is called at most once per attempt, idempotency key = attempt id
    - Only positive totals reach the processor; a free cart fails at Price
    - Materialize clears exactly the snapshotted line ids; lines added later survive
    - A charged attempt without an order is left in 'ambiguous' or 'conflict'
      status with its charge id for reconciliation

Design Decisions:
    - Serialization lives in the database (partial unique index + row-count
      check), so it holds across processes; no in-process locks
    - Attempt bookkeeping uses UPDATE statements so it works after a rollback
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import Settings
from storefront.core.boundary_protocols import PaymentGateway
from storefront.core.checkout_state import CheckoutState
from storefront.core.clock import utc_now
from storefront.core.domain_types import (
    AttemptId, AttemptStatus, ChargeReceipt, CheckoutStep, UserId,
)
from storefront.core.errors import (
    ConcurrentCheckoutConflictError, EmptyCartError, ErrorContext,
    PaymentDeclinedError, PaymentGatewayUnavailableError, StorefrontError,
    UnauthenticatedError,
)
from storefront.core.outcome import Outcome
from storefront.core.pricing import (
    check_chargeable, compute_total, format_amount, order_line_copies,
)
from storefront.models.checkout_attempt import CheckoutAttempt
from storefront.models.order import Order, OrderItem
from storefront.models.user import User
from storefront.services.cart_ledger import CartLedger

logger = logging.getLogger(__name__)


class CheckoutOrchestrator:
    """Turns a user's cart into a paid Order."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        settings: Settings,
        ledger: CartLedger | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.gateway = gateway
        self.settings = settings
        self.ledger = ledger or CartLedger(db)
        self.clock = clock

    async def checkout(
        self, user_id: UserId | None, payment_token: str,
    ) -> Outcome[Order]:
        state = CheckoutState(user_id=user_id)

        # AuthCheck: no side effects until the caller is known
        if user_id is None or await self.db.get(User, user_id) is None:
            return self._fail(state, UnauthenticatedError())

        claim = await self._claim(state)
        if not claim.ok:
            return self._fail(state, claim.error)
        state.attempt_id = claim.value

        state.advance(CheckoutStep.SNAPSHOT)
        lines = await self.ledger.snapshot(user_id)
        if not lines:
            await self._release(state.attempt_id)
            return self._fail(state, EmptyCartError())
        state.capture(lines)

        state.advance(CheckoutStep.PRICE)
        total = compute_total(state.lines)
        error = total if isinstance(total, StorefrontError) else check_chargeable(total)
        if error:
            await self._release(state.attempt_id)
            return self._fail(state, error)
        state.amount = total
        currency = self.settings.payment_currency
        await self._record(
            state.attempt_id,
            amount=total,
            currency=currency,
            line_ids=[str(line_id) for line_id in state.line_ids],
        )

        state.advance(CheckoutStep.CHARGE)
        logger.info(
            f"Charging {format_amount(total, currency)}", extra=state.log_extra(),
        )
        charged = await self._charge(state, currency, payment_token)
        if not charged.ok:
            return self._fail(state, charged.error)
        state.receipt = charged.value
        await self._record(state.attempt_id, charge_id=state.receipt.charge_id)

        if state.receipt.amount != total:
            await self._finish(
                state.attempt_id, AttemptStatus.AMBIGUOUS,
                "PAYMENT_GATEWAY_UNAVAILABLE",
            )
            return self._fail(state, PaymentGatewayUnavailableError(
                "Payment processor charged an unexpected amount", ambiguous=True,
            ))

        state.advance(CheckoutStep.MATERIALIZE)
        order = await self._materialize(state)
        if not order.ok:
            return self._fail(state, order.error)

        state.advance(CheckoutStep.DONE)
        logger.info(
            "Checkout completed",
            extra={**state.log_extra(), "order_id": str(order.value.id)},
        )
        return order

    # ─── steps ──────────────────────────────────────────────────

    async def _claim(self, state: CheckoutState) -> Outcome[AttemptId]:
        """Insert this user's pending attempt; a stale one is taken over once."""
        for takeover in (False, True):
            attempt_id = AttemptId(uuid.uuid4())
            self.db.add(CheckoutAttempt(
                id=attempt_id,
                user_id=state.user_id,
                status=AttemptStatus.PENDING.value,
                line_ids=[],
                created_at=self.clock(),
            ))
            try:
                await self.db.commit()
                return Outcome.success(attempt_id)
            except IntegrityError:
                await self.db.rollback()
            if takeover or not await self._expire_stale_claim(state.user_id):
                break
        return Outcome.failure(ConcurrentCheckoutConflictError(
            "Another checkout is already in progress for this account",
        ))

    async def _expire_stale_claim(self, user_id: UserId) -> bool:
        now = self.clock()
        cutoff = now - timedelta(seconds=self.settings.checkout_claim_ttl_seconds)
        result = await self.db.execute(
            update(CheckoutAttempt)
            .where(
                CheckoutAttempt.user_id == user_id,
                CheckoutAttempt.status == AttemptStatus.PENDING.value,
                CheckoutAttempt.created_at < cutoff,
            )
            .values(status=AttemptStatus.STALE.value, finished_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount:
            logger.warning(
                "Took over a stale checkout claim", extra={"user_id": str(user_id)},
            )
        return bool(result.rowcount)

    async def _charge(
        self, state: CheckoutState, currency: str, payment_token: str,
    ) -> Outcome[ChargeReceipt]:
        try:
            receipt = await asyncio.wait_for(
                self.gateway.charge(
                    state.amount, currency, payment_token,
                    idempotency_key=str(state.attempt_id),
                ),
                timeout=self.settings.payment_timeout_seconds,
            )
        except PaymentDeclinedError as e:
            await self._finish(state.attempt_id, AttemptStatus.DECLINED, e.code)
            return Outcome.failure(e)
        except PaymentGatewayUnavailableError as e:
            status = AttemptStatus.AMBIGUOUS if e.ambiguous else AttemptStatus.UNAVAILABLE
            await self._finish(state.attempt_id, status, e.code)
            return Outcome.failure(e)
        except TimeoutError:
            await self._finish(
                state.attempt_id, AttemptStatus.AMBIGUOUS, "PAYMENT_GATEWAY_UNAVAILABLE",
            )
            return Outcome.failure(PaymentGatewayUnavailableError(
                "Payment processor did not answer in time", ambiguous=True,
            ))
        except Exception as e:
            logger.error(
                f"Unexpected payment gateway failure: {e}",
                extra=state.log_extra(), exc_info=True,
            )
            await self._finish(
                state.attempt_id, AttemptStatus.AMBIGUOUS, "PAYMENT_GATEWAY_UNAVAILABLE",
            )
            return Outcome.failure(PaymentGatewayUnavailableError(
                "Payment processor failed unexpectedly", ambiguous=True,
            ))
        return Outcome.success(receipt)

    async def _materialize(self, state: CheckoutState) -> Outcome[Order]:
        """Order insert, line clear and attempt completion in one transaction."""
        receipt = state.receipt
        order = Order(
            id=uuid.uuid4(),
            user_id=state.user_id,
            total=receipt.amount,
            charge=receipt.charge_id,
            created_at=self.clock(),
            items=[
                OrderItem(position=position, **copy)
                for position, copy in enumerate(order_line_copies(state.lines))
            ],
        )
        self.db.add(order)
        try:
            cleared = await self.ledger.clear(state.user_id, state.line_ids)
            if cleared == len(state.line_ids):
                await self._finish(state.attempt_id, AttemptStatus.COMPLETED, None)
                return Outcome.success(order)
            await self.db.rollback()
            reason = f"{len(state.line_ids) - cleared} cart line(s) vanished"
        except IntegrityError as e:
            await self.db.rollback()
            reason = f"order insert rejected: {e.orig}"

        logger.error(
            f"Charged but could not materialize order: {reason}",
            extra=state.log_extra(),
        )
        await self._finish(
            state.attempt_id, AttemptStatus.CONFLICT, "CONCURRENT_CHECKOUT_CONFLICT",
        )
        return Outcome.failure(ConcurrentCheckoutConflictError(
            "Your cart changed during checkout; the payment has been flagged for review",
        ))

    # ─── attempt bookkeeping ────────────────────────────────────

    async def _record(self, attempt_id: AttemptId, **values) -> None:
        await self.db.execute(
            update(CheckoutAttempt)
            .where(CheckoutAttempt.id == attempt_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def _finish(
        self, attempt_id: AttemptId, status: AttemptStatus, error_code: str | None,
    ) -> None:
        await self._record(
            attempt_id,
            status=status.value,
            error_code=error_code,
            finished_at=self.clock(),
        )

    async def _release(self, attempt_id: AttemptId) -> None:
        """Drop a claim that never reached the processor."""
        attempt = await self.db.get(CheckoutAttempt, attempt_id)
        if attempt is not None:
            await self.db.delete(attempt)
        await self.db.commit()

    def _fail(self, state: CheckoutState, error: StorefrontError) -> Outcome[Order]:
        error.context = ErrorContext(
            timestamp=error.context.timestamp,
            user_id=str(state.user_id) if state.user_id else None,
            attempt_id=str(state.attempt_id) if state.attempt_id else None,
            charge_id=state.receipt.charge_id if state.receipt else None,
            checkout_step=state.step.value,
        )
        log = logger.error if error.http_status >= 500 else logger.warning
        log(
            f"Checkout failed at {state.step.value}: {error.code}",
            extra={**state.log_extra(), "error_code": error.code},
        )
        return Outcome.failure(error)
