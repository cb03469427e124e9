from datetime import datetime, timedelta, timezone

import pytest

from order_lifecycle.domain import timeline as ledger
from order_lifecycle.domain.models import TimelineEventName
from order_lifecycle.domain.exceptions import ValidationError


T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def event(name, minutes=0):
    return ledger.make_event(name, T0 + timedelta(minutes=minutes))


def names(entries):
    return [e.name.value for e in entries]


def test_append_adds_to_end_without_mutating():
    history = [event("Created")]
    updated = ledger.append(history, event("Processing Payment", 1))
    assert names(history) == ["Created"]
    assert names(updated) == ["Created", "Processing Payment"]


def test_unknown_event_name_rejected():
    with pytest.raises(ValidationError):
        ledger.make_event("Shipped", T0)
    with pytest.raises(ValidationError):
        ledger.append([], {"name": "Created", "timestamp": T0})


def test_replace_latest_processing_removes_only_most_recent():
    history = [
        event("Created"),
        event("Processing Payment", 1),
        event("Payment Failed", 2),
        event("Processing Payment", 3),
    ]
    updated = ledger.replace_latest_processing_with(history, event("Payment Completed", 4))
    assert names(updated) == ["Created", "Processing Payment", "Payment Failed", "Payment Completed"]
    assert ledger.count(updated, TimelineEventName.PROCESSING_PAYMENT) == 1


def test_replace_keeps_position_of_replaced_entry():
    history = [event("Created"), event("Processing Payment", 1), event("Confirmed", 2)]
    updated = ledger.replace_latest_processing_with(history, event("Payment Failed", 3))
    assert names(updated) == ["Created", "Payment Failed", "Confirmed"]


def test_replace_without_processing_entry_appends():
    history = [event("Created")]
    updated = ledger.replace_latest_processing_with(history, event("Payment Failed", 1))
    assert names(updated) == ["Created", "Payment Failed"]


def test_view_sorts_by_timestamp_but_storage_keeps_append_order():
    # часы могут расходиться: запись добавлена позже, но с меньшим временем
    history = [event("Created", 0), event("Processing Payment", 5), event("Payment Completed", 3)]
    assert names(ledger.view(history)) == ["Created", "Payment Completed", "Processing Payment"]
    assert names(history) == ["Created", "Processing Payment", "Payment Completed"]
    assert ledger.latest(history).name == TimelineEventName.PAYMENT_COMPLETED


def test_view_keeps_append_order_for_equal_timestamps():
    history = [event("Created"), event("Cancelled")]
    assert names(ledger.view(history)) == ["Created", "Cancelled"]


def test_latest_of_empty_timeline():
    assert ledger.latest([]) is None
