from decimal import Decimal

import pytest

from order_lifecycle.domain.models import OrderStatus, AttemptOutcome, idempotency_key_for
from order_lifecycle.domain.exceptions import InvalidTransitionError, ValidationError
from order_lifecycle.application.interfaces import ChargeOutcome, ChargeStatus
from order_lifecycle.application.payment_coordinator import PaymentCoordinator

from conftest import run


def names(order):
    return [e.name.value for e in order.timeline]


@pytest.fixture
def coordinator(uow, processor):
    return PaymentCoordinator(uow, processor)


def test_processing_persisted_before_charge_dispatch(services, coordinator, processor, store):
    order = run(services.new_order())
    seen = {}

    async def inspect(key, order_id):
        stored = store.orders[order_id]
        seen["status"] = stored.status
        seen["timeline"] = names(stored)
        seen["payment_id"] = stored.payment_id

    processor.on_charge = inspect
    run(coordinator.initiate(order.id, Decimal("30.00")))

    assert seen["status"] == OrderStatus.PROCESSING
    assert seen["timeline"] == ["Created", "Processing Payment"]
    assert seen["payment_id"] == idempotency_key_for(order.id, 1)


def test_succeeded_confirms_order(services, coordinator, processor):
    order = run(services.new_order())
    result = run(coordinator.initiate(order.id, Decimal("30.00")))

    assert result.outcome == ChargeOutcome.SUCCEEDED
    assert result.order.status == OrderStatus.CONFIRMED
    assert result.attempt.outcome == AttemptOutcome.SUCCEEDED
    assert result.attempt.amount == Decimal("30.00")
    assert processor.charges == [(idempotency_key_for(order.id, 1), order.id, Decimal("30.00"))]


def test_failed_moves_to_payment_failed(services, coordinator, processor):
    processor.charge_outcomes = [ChargeOutcome.FAILED]
    order = run(services.new_order())
    result = run(coordinator.initiate(order.id, Decimal("30.00")))

    assert result.order.status == OrderStatus.PAYMENT_FAILED
    assert result.attempt.outcome == AttemptOutcome.FAILED
    assert not result.reconcile_required


def test_indeterminate_never_transitions(services, coordinator, processor, store):
    processor.charge_outcomes = [ChargeOutcome.INDETERMINATE]
    order = run(services.new_order())
    result = run(coordinator.initiate(order.id, Decimal("30.00")))

    assert result.reconcile_required
    assert result.attempt.outcome == AttemptOutcome.PENDING
    assert store.orders[order.id].status == OrderStatus.PROCESSING
    assert names(store.orders[order.id]) == ["Created", "Processing Payment"]


def test_amount_mismatch_rejected_without_dispatch(services, coordinator, processor, store):
    order = run(services.new_order())
    with pytest.raises(ValidationError):
        run(coordinator.initiate(order.id, Decimal("31.00")))
    assert processor.charges == []
    assert store.orders[order.id].status == OrderStatus.CREATED


def test_initiate_rejected_for_terminal_order(services, coordinator, processor):
    order = run(services.new_order())
    run(services.cancel(order.id))
    with pytest.raises(InvalidTransitionError):
        run(coordinator.initiate(order.id, Decimal("30.00")))
    assert processor.charges == []


def test_resolve_pending_leaves_order_processing(services, coordinator, processor):
    processor.charge_outcomes = [ChargeOutcome.INDETERMINATE]
    order = run(services.new_order())
    pending = run(coordinator.initiate(order.id, Decimal("30.00"))).order

    result = run(coordinator.resolve(pending))
    assert result.reconcile_required
    assert result.order.status == OrderStatus.PROCESSING
    assert processor.queries == [pending.payment_id]


def test_resolve_redispatches_unknown_attempt_with_same_key(services, coordinator, processor):
    processor.charge_outcomes = [ChargeOutcome.INDETERMINATE, ChargeOutcome.SUCCEEDED]
    order = run(services.new_order())
    pending = run(coordinator.initiate(order.id, Decimal("30.00"))).order
    processor.statuses[pending.payment_id] = ChargeStatus.NOT_FOUND

    result = run(coordinator.resolve(pending))

    assert result.order.status == OrderStatus.CONFIRMED
    assert [c[0] for c in processor.charges] == [pending.payment_id, pending.payment_id]
    assert names(result.order) == ["Created", "Payment Completed"]
