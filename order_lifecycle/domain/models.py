from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    CREATED = "Created"
    PROCESSING = "Processing"
    CONFIRMED = "Confirmed"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    PAYMENT_FAILED = "Payment Failed"


class TimelineEventName(str, Enum):
    CREATED = "Created"
    CONFIRMED = "Confirmed"
    PROCESSING_PAYMENT = "Processing Payment"
    PAYMENT_COMPLETED = "Payment Completed"
    PAYMENT_FAILED = "Payment Failed"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class AttemptOutcome(str, Enum):
    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class TimelineEvent(BaseModel):
    """Value Object: запись в истории заказа"""
    name: TimelineEventName
    timestamp: datetime


class Product(BaseModel):
    """Value Object: товар из каталога"""
    id: str
    name: str
    price: Decimal


class Order(BaseModel):
    """Domain Entity: заказ.

    Товар, количество и total_amount фиксируются при создании.
    Статус и timeline меняются только через state_machine.apply_event.
    """
    id: str
    customer_id: str
    product: Product
    quantity: int = Field(gt=0)
    total_amount: Decimal
    status: OrderStatus
    payment_id: Optional[str] = None
    payment_attempt: int = 0
    created_at: datetime
    updated_at: datetime
    timeline: list[TimelineEvent] = Field(default_factory=list)
    version: int = 0

    def awaits_payment_outcome(self) -> bool:
        return self.status == OrderStatus.PROCESSING


class PaymentAttempt(BaseModel):
    """Попытка оплаты. Не хранится: живет в рамках одного вызова координатора"""
    idempotency_key: str
    amount: Decimal
    outcome: AttemptOutcome = AttemptOutcome.PENDING


CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Денежные суммы хранятся с точностью до копейки"""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def idempotency_key_for(order_id: str, attempt: int) -> str:
    """Ключ стабилен для пары (заказ, эпоха попытки)"""
    return f"order-{order_id}-attempt-{attempt}"
