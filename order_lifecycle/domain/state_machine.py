"""Order State Machine: чистая функция перехода, без I/O."""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid

from order_lifecycle.domain import timeline as ledger
from order_lifecycle.domain.models import (
    Order, OrderStatus, Product, TimelineEventName, idempotency_key_for, to_money
)
from order_lifecycle.domain.exceptions import InvalidTransitionError, ValidationError


class OrderEvent(str, Enum):
    CANCEL_REQUESTED = "cancel_requested"
    PAYMENT_INITIATED = "payment_initiated"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    DELIVERY_CONFIRMED = "delivery_confirmed"


TRANSITIONS: dict[tuple[OrderStatus, OrderEvent], OrderStatus] = {
    (OrderStatus.CREATED, OrderEvent.CANCEL_REQUESTED): OrderStatus.CANCELLED,
    (OrderStatus.CREATED, OrderEvent.PAYMENT_INITIATED): OrderStatus.PROCESSING,
    (OrderStatus.PROCESSING, OrderEvent.PAYMENT_SUCCEEDED): OrderStatus.CONFIRMED,
    (OrderStatus.PROCESSING, OrderEvent.PAYMENT_FAILED): OrderStatus.PAYMENT_FAILED,
    (OrderStatus.PAYMENT_FAILED, OrderEvent.PAYMENT_INITIATED): OrderStatus.PROCESSING,
    (OrderStatus.PAYMENT_FAILED, OrderEvent.CANCEL_REQUESTED): OrderStatus.CANCELLED,
    (OrderStatus.CONFIRMED, OrderEvent.DELIVERY_CONFIRMED): OrderStatus.DELIVERED,
}

STATUS_TIMELINE_EVENT: dict[OrderStatus, TimelineEventName] = {
    OrderStatus.CREATED: TimelineEventName.CREATED,
    OrderStatus.PROCESSING: TimelineEventName.PROCESSING_PAYMENT,
    OrderStatus.CONFIRMED: TimelineEventName.PAYMENT_COMPLETED,
    OrderStatus.PAYMENT_FAILED: TimelineEventName.PAYMENT_FAILED,
    OrderStatus.CANCELLED: TimelineEventName.CANCELLED,
    OrderStatus.DELIVERED: TimelineEventName.DELIVERED,
}

if set(STATUS_TIMELINE_EVENT) != set(OrderStatus):
    raise RuntimeError("Для каждого статуса должна быть метка timeline")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_status(current: OrderStatus, event: OrderEvent) -> OrderStatus:
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionError(current, event)


def new_order(customer_id: str, product: Product, quantity: int, at: Optional[datetime] = None) -> Order:
    """Бизнес-правило: сумма считается один раз при создании.

    Цена приводится к копейкам до расчета, чтобы сумма после сохранения
    оставалась равной цене, умноженной на количество.
    """
    if quantity <= 0:
        raise ValidationError(f"Количество должно быть положительным, получено {quantity}")
    at = at or utcnow()
    product = product.model_copy(update={"price": to_money(product.price)})
    return Order(
        id=str(uuid.uuid4()),
        customer_id=customer_id,
        product=product,
        quantity=quantity,
        total_amount=to_money(product.price * quantity),
        status=OrderStatus.CREATED,
        created_at=at,
        updated_at=at,
        timeline=[ledger.make_event(TimelineEventName.CREATED, at)],
    )


def apply_event(
    order: Order,
    event: OrderEvent,
    *,
    at: Optional[datetime] = None,
    amount: Optional[Decimal] = None,
    idempotency_key: Optional[str] = None,
    supersede_processing: bool = False,
) -> Order:
    """Применяет событие к заказу и возвращает новый экземпляр.

    Каждый принятый переход добавляет ровно одну запись в timeline.
    С supersede_processing итоговое событие оплаты заменяет висящий
    "Processing Payment" вместо добавления в конец.
    """
    target = next_status(order.status, event)
    at = at or utcnow()
    changes = {}

    if event == OrderEvent.PAYMENT_INITIATED:
        if amount is None or Decimal(amount) != order.total_amount:
            raise ValidationError(
                f"Сумма {amount} не совпадает с суммой заказа {order.total_amount}"
            )
        attempt = order.payment_attempt + 1
        changes["payment_attempt"] = attempt
        changes["payment_id"] = idempotency_key_for(order.id, attempt)

    elif event in (OrderEvent.PAYMENT_SUCCEEDED, OrderEvent.PAYMENT_FAILED):
        if idempotency_key != order.payment_id:
            raise InvalidTransitionError(
                order.status, event,
                f"ключ {idempotency_key} не относится к текущей попытке {order.payment_id}"
            )

    entry = ledger.make_event(STATUS_TIMELINE_EVENT[target], at)
    if supersede_processing:
        history = ledger.replace_latest_processing_with(order.timeline, entry)
    else:
        history = ledger.append(order.timeline, entry)

    changes.update(
        status=target,
        timeline=history,
        updated_at=max(order.updated_at, at),
    )
    return order.model_copy(update=changes)
