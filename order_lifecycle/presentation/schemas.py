from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from order_lifecycle.domain import timeline as ledger
from order_lifecycle.domain.models import OrderStatus, TimelineEventName
from order_lifecycle.application.interfaces import ChargeOutcome


class CreateOrderRequest(BaseModel):
    customer_id: Optional[str] = None
    product_id: str
    quantity: int


class PayOrderRequest(BaseModel):
    amount: Decimal


class PaymentUpdateRequest(BaseModel):
    order_id: str
    idempotency_key: str
    status: str
    amount: Decimal


class ProductResponse(BaseModel):
    id: str
    name: str
    price: Decimal


class TimelineEventResponse(BaseModel):
    name: TimelineEventName
    timestamp: datetime


class OrderResponse(BaseModel):
    id: str
    customer_id: str
    product: ProductResponse
    quantity: int
    total_amount: Decimal
    status: OrderStatus
    payment_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    timeline: list[TimelineEventResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, order):
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            product=ProductResponse(id=order.product.id, name=order.product.name, price=order.product.price),
            quantity=order.quantity,
            total_amount=order.total_amount,
            status=order.status,
            payment_id=order.payment_id,
            created_at=order.created_at,
            updated_at=order.updated_at,
            timeline=[
                TimelineEventResponse(name=e.name, timestamp=e.timestamp)
                for e in ledger.view(order.timeline)
            ]
        )


class PaymentResponse(BaseModel):
    order: OrderResponse
    payment_outcome: ChargeOutcome
    reconcile_required: bool

    @classmethod
    def from_result(cls, result):
        return cls(
            order=OrderResponse.from_domain(result.order),
            payment_outcome=result.outcome,
            reconcile_required=result.reconcile_required
        )


class ErrorResponse(BaseModel):
    detail: str
