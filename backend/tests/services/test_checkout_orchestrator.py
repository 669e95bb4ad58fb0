"""Integration Tests: CheckoutOrchestrator — snapshot, price, charge, materialize.

Invariants:
    - Successful checkout: one charge, one order with copied lines, cart cleared
    - Every failure leaves the cart intact and writes no order
    - Lines added while the charge is in flight survive the clear
    - A second checkout during the first one gets a conflict, never a second charge
    - A charge that cannot be materialized is recorded as 'conflict' with its charge id
    - Timeouts are ambiguous and recorded for reconciliation

Design Decisions:
    - Interleavings are driven by the gateway's during_charge hook on a second
      session, so races are deterministic rather than timing-based
"""

from datetime import timedelta
from uuid import uuid4

from sqlalchemy import func, select

from storefront.core.clock import utc_now
from storefront.core.domain_types import AttemptStatus, CheckoutStep, UserId
from storefront.core.errors import (
    ConcurrentCheckoutConflictError, DomainValidationError, EmptyCartError,
    PaymentDeclinedError, PaymentGatewayUnavailableError, UnauthenticatedError,
)
from storefront.models.cart_line import CartLine
from storefront.models.checkout_attempt import CheckoutAttempt
from storefront.models.order import Order
from storefront.services.cart_ledger import CartLedger
from storefront.services.checkout_orchestrator import CheckoutOrchestrator


# -- Helpers -------------------------------------------------------------------

async def _fill_cart(test_db, user, *items_and_quantities):
    ledger = CartLedger(test_db)
    for item, quantity in items_and_quantities:
        for _ in range(quantity):
            (await ledger.add_or_increment(UserId(user.id), item.id)).unwrap()


async def _count(session_factory, model, **where):
    async with session_factory() as db:
        query = select(func.count()).select_from(model)
        for column, value in where.items():
            query = query.where(getattr(model, column) == value)
        return (await db.execute(query)).scalar_one()


async def _attempts(session_factory, user):
    async with session_factory() as db:
        result = await db.execute(
            select(CheckoutAttempt).where(CheckoutAttempt.user_id == user.id)
            .order_by(CheckoutAttempt.created_at)
        )
        return list(result.scalars().all())


async def _cart_item_ids(session_factory, user):
    async with session_factory() as db:
        lines = await CartLedger(db).snapshot(UserId(user.id))
        return {line.item.id: line.quantity for line in lines}


# ==============================================================================
# Happy path
# ==============================================================================


async def test_checkout_creates_order_and_clears_cart(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    shirt = await make_item(price=1000, title="Shirt")
    hat = await make_item(price=2499, title="Hat")
    await _fill_cart(test_db, user, (shirt, 2), (hat, 1))

    outcome = await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok_visa",
    )

    order = outcome.unwrap()
    assert order.total == 4499
    assert order.user_id == user.id
    assert [(i.title, i.price, i.quantity) for i in order.items] == [
        ("Shirt", 1000, 2), ("Hat", 2499, 1),
    ]
    assert order.charge == gateway.successful_charges[0].charge_id
    assert gateway.calls[0]["amount"] == 4499
    assert gateway.calls[0]["currency"] == "EUR"
    assert gateway.calls[0]["payment_token"] == "tok_visa"
    assert await _cart_item_ids(test_session_factory, user) == {}

    [attempt] = await _attempts(test_session_factory, user)
    assert attempt.status == AttemptStatus.COMPLETED.value
    assert attempt.charge_id == order.charge
    assert attempt.amount == 4499
    assert gateway.calls[0]["idempotency_key"] == str(attempt.id)


async def test_order_lines_are_copies_of_items(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    item = await make_item(price=700, title="Mug")
    await _fill_cart(test_db, user, (item, 1))

    order = (await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok",
    )).unwrap()

    item.price = 9999
    item.title = "Renamed"
    await test_db.commit()
    async with test_session_factory() as db:
        stored = await db.get(Order, order.id)
        assert stored.items[0].title == "Mug"
        assert stored.items[0].price == 700
        assert stored.items[0].image == "mug.jpg"


# ==============================================================================
# Failures without side effects
# ==============================================================================


async def test_anonymous_checkout_is_unauthenticated(test_db, test_session_factory, settings, gateway):
    outcome = await CheckoutOrchestrator(test_db, gateway, settings).checkout(None, "tok")
    assert isinstance(outcome.error, UnauthenticatedError)
    assert outcome.error.context.checkout_step == CheckoutStep.AUTH_CHECK.value
    assert gateway.calls == []
    assert await _count(test_session_factory, CheckoutAttempt) == 0


async def test_unknown_user_is_unauthenticated(test_db, settings, gateway):
    outcome = await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(uuid4()), "tok",
    )
    assert isinstance(outcome.error, UnauthenticatedError)


async def test_empty_cart_has_no_side_effects(
    test_db, test_session_factory, settings, gateway, make_user,
):
    user = await make_user()
    outcome = await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok",
    )
    assert isinstance(outcome.error, EmptyCartError)
    assert gateway.calls == []
    assert await _count(test_session_factory, Order) == 0
    assert await _attempts(test_session_factory, user) == []


async def test_free_cart_is_never_charged(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    freebie = await make_item(price=0, title="Sticker")
    await _fill_cart(test_db, user, (freebie, 2))

    outcome = await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok",
    )

    assert isinstance(outcome.error, DomainValidationError)
    assert outcome.error.context.checkout_step == CheckoutStep.PRICE.value
    assert gateway.calls == []
    assert await _count(test_session_factory, Order) == 0
    assert await _attempts(test_session_factory, user) == []
    assert await _cart_item_ids(test_session_factory, user) == {freebie.id: 2}


async def test_decline_leaves_cart_and_writes_no_order(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    item = await make_item(price=500)
    await _fill_cart(test_db, user, (item, 3))
    gateway.decline_next()

    outcome = await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok_chargeDeclined",
    )

    assert isinstance(outcome.error, PaymentDeclinedError)
    assert outcome.error.context.checkout_step == CheckoutStep.CHARGE.value
    assert await _count(test_session_factory, Order) == 0
    assert await _cart_item_ids(test_session_factory, user) == {item.id: 3}
    [attempt] = await _attempts(test_session_factory, user)
    assert attempt.status == AttemptStatus.DECLINED.value
    assert attempt.error_code == "PAYMENT_DECLINED"


async def test_unavailable_gateway_is_not_ambiguous(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    item = await make_item()
    await _fill_cart(test_db, user, (item, 1))
    gateway.fail_next(PaymentGatewayUnavailableError("rate limited", ambiguous=False))

    outcome = await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok",
    )

    assert isinstance(outcome.error, PaymentGatewayUnavailableError)
    assert outcome.error.ambiguous is False
    [attempt] = await _attempts(test_session_factory, user)
    assert attempt.status == AttemptStatus.UNAVAILABLE.value


async def test_timeout_is_ambiguous_and_recorded(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    item = await make_item()
    await _fill_cart(test_db, user, (item, 1))
    gateway.delay_seconds = 5
    fast = settings.model_copy(update={"payment_timeout_seconds": 0.05})

    outcome = await CheckoutOrchestrator(test_db, gateway, fast).checkout(
        UserId(user.id), "tok",
    )

    assert isinstance(outcome.error, PaymentGatewayUnavailableError)
    assert outcome.error.ambiguous is True
    assert await _count(test_session_factory, Order) == 0
    assert await _cart_item_ids(test_session_factory, user) == {item.id: 1}
    [attempt] = await _attempts(test_session_factory, user)
    assert attempt.status == AttemptStatus.AMBIGUOUS.value
    assert attempt.finished_at is not None


async def test_failed_attempt_releases_claim_for_next_checkout(
    test_db, settings, gateway, make_user, make_item,
):
    user = await make_user()
    item = await make_item()
    await _fill_cart(test_db, user, (item, 1))
    gateway.decline_next()
    orchestrator = CheckoutOrchestrator(test_db, gateway, settings)

    assert not (await orchestrator.checkout(UserId(user.id), "tok")).ok
    assert (await orchestrator.checkout(UserId(user.id), "tok")).ok
    assert len(gateway.successful_charges) == 1


async def test_receipt_amount_mismatch_writes_no_order(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    item = await make_item(price=1000)
    await _fill_cart(test_db, user, (item, 1))
    gateway.amount_override = 1

    outcome = await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok",
    )

    assert isinstance(outcome.error, PaymentGatewayUnavailableError)
    assert outcome.error.ambiguous is True
    assert await _count(test_session_factory, Order) == 0
    [attempt] = await _attempts(test_session_factory, user)
    assert attempt.status == AttemptStatus.AMBIGUOUS.value
    assert attempt.charge_id == gateway.successful_charges[0].charge_id


# ==============================================================================
# Interleavings
# ==============================================================================


async def test_line_added_during_charge_survives(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    shirt = await make_item(price=1000, title="Shirt")
    socks = await make_item(price=300, title="Socks")
    await _fill_cart(test_db, user, (shirt, 1))

    async def add_socks():
        async with test_session_factory() as other:
            (await CartLedger(other).add_or_increment(UserId(user.id), socks.id)).unwrap()

    gateway.during_charge = add_socks
    order = (await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok",
    )).unwrap()

    assert order.total == 1000
    assert [i.title for i in order.items] == ["Shirt"]
    assert await _cart_item_ids(test_session_factory, user) == {socks.id: 1}


async def test_concurrent_checkout_gets_conflict_and_no_second_charge(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    item = await make_item(price=1500)
    await _fill_cart(test_db, user, (item, 2))
    second = {}

    async def second_checkout():
        async with test_session_factory() as other:
            second["outcome"] = await CheckoutOrchestrator(
                other, gateway, settings,
            ).checkout(UserId(user.id), "tok")

    gateway.during_charge = second_checkout
    first = await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok",
    )

    assert first.ok
    assert isinstance(second["outcome"].error, ConcurrentCheckoutConflictError)
    assert len(gateway.calls) == 1
    assert await _count(test_session_factory, Order, user_id=user.id) == 1
    assert await _count(test_session_factory, CartLine, user_id=user.id) == 0


async def test_line_removed_during_charge_is_conflict(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    shirt = await make_item(price=1000, title="Shirt")
    hat = await make_item(price=2000, title="Hat")
    await _fill_cart(test_db, user, (shirt, 1), (hat, 1))
    hat_line = next(
        line for line in await CartLedger(test_db).snapshot(UserId(user.id))
        if line.item.id == hat.id
    )

    async def remove_hat():
        async with test_session_factory() as other:
            (await CartLedger(other).remove(UserId(user.id), hat_line.id)).unwrap()

    gateway.during_charge = remove_hat
    outcome = await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok",
    )

    assert isinstance(outcome.error, ConcurrentCheckoutConflictError)
    assert outcome.error.context.checkout_step == CheckoutStep.MATERIALIZE.value
    assert await _count(test_session_factory, Order) == 0
    assert await _cart_item_ids(test_session_factory, user) == {shirt.id: 1}
    [attempt] = await _attempts(test_session_factory, user)
    assert attempt.status == AttemptStatus.CONFLICT.value
    assert attempt.charge_id == gateway.successful_charges[0].charge_id


async def test_stale_claim_is_taken_over(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    item = await make_item()
    await _fill_cart(test_db, user, (item, 1))
    test_db.add(CheckoutAttempt(
        user_id=user.id, status=AttemptStatus.PENDING.value, line_ids=[],
        created_at=utc_now() - timedelta(hours=1),
    ))
    await test_db.commit()

    outcome = await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok",
    )

    assert outcome.ok
    statuses = sorted(a.status for a in await _attempts(test_session_factory, user))
    assert statuses == [AttemptStatus.COMPLETED.value, AttemptStatus.STALE.value]


async def test_fresh_pending_claim_blocks_checkout(
    test_db, test_session_factory, settings, gateway, make_user, make_item,
):
    user = await make_user()
    item = await make_item()
    await _fill_cart(test_db, user, (item, 1))
    test_db.add(CheckoutAttempt(
        user_id=user.id, status=AttemptStatus.PENDING.value, line_ids=[],
        created_at=utc_now(),
    ))
    await test_db.commit()

    outcome = await CheckoutOrchestrator(test_db, gateway, settings).checkout(
        UserId(user.id), "tok",
    )

    assert isinstance(outcome.error, ConcurrentCheckoutConflictError)
    assert gateway.calls == []
