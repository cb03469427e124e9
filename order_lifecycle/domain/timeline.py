"""Timeline Ledger: история событий одного заказа.

Хранимый порядок: порядок добавления, по нему определяется статус.
Сортировка по времени нужна только для отображения (view).
Функции не изменяют переданный список, а возвращают новый.
"""
from datetime import datetime
from typing import Optional

from order_lifecycle.domain.models import TimelineEvent, TimelineEventName
from order_lifecycle.domain.exceptions import ValidationError


def make_event(name, at: datetime) -> TimelineEvent:
    try:
        event_name = TimelineEventName(name)
    except ValueError:
        raise ValidationError(f"Неизвестное событие timeline: {name!r}")
    return TimelineEvent(name=event_name, timestamp=at)


def _check(event) -> TimelineEvent:
    if not isinstance(event, TimelineEvent) or not isinstance(event.name, TimelineEventName):
        raise ValidationError(f"Некорректная запись timeline: {event!r}")
    return event


def append(timeline: list[TimelineEvent], event: TimelineEvent) -> list[TimelineEvent]:
    return [*timeline, _check(event)]


def replace_latest_processing_with(timeline: list[TimelineEvent], event: TimelineEvent) -> list[TimelineEvent]:
    """Заменяет последний "Processing Payment" итоговым событием оплаты.

    Удаляется не более одной записи, новая встает на ее место,
    порядок остальных записей сохраняется.
    """
    _check(event)
    for index in range(len(timeline) - 1, -1, -1):
        if timeline[index].name == TimelineEventName.PROCESSING_PAYMENT:
            return [*timeline[:index], event, *timeline[index + 1:]]
    return append(timeline, event)


def view(timeline: list[TimelineEvent]) -> list[TimelineEvent]:
    # sorted() устойчива: при равных timestamp остается порядок добавления
    return sorted(timeline, key=lambda e: e.timestamp)


def latest(timeline: list[TimelineEvent]) -> Optional[TimelineEvent]:
    return timeline[-1] if timeline else None


def count(timeline: list[TimelineEvent], name: TimelineEventName) -> int:
    return sum(1 for e in timeline if e.name == name)
