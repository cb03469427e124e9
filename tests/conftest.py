import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, List, Optional
import uuid

import pytest

from order_lifecycle.domain.models import Order, Product
from order_lifecycle.domain.exceptions import PersistenceConflictError
from order_lifecycle.application.interfaces import (
    CatalogService, PaymentProcessor, ChargeOutcome, ChargeStatus, EventPublisher, UnitOfWork
)
from order_lifecycle.application.locks import OrderLocks
from order_lifecycle.application.payment_coordinator import PaymentCoordinator
from order_lifecycle.application.create_order import CreateOrderUseCase, CreateOrderDTO
from order_lifecycle.application.cancel_order import CancelOrderUseCase
from order_lifecycle.application.pay_order import PayOrderUseCase, PayOrderDTO
from order_lifecycle.application.refresh_order import RefreshOrderUseCase
from order_lifecycle.application.get_order import GetOrderUseCase, ListOrdersUseCase
from order_lifecycle.application.confirm_delivery import ConfirmDeliveryUseCase
from order_lifecycle.application.process_payment_update import ProcessPaymentUpdateUseCase


def run(coro):
    return asyncio.run(coro)


# ============================================================================
# IN-MEMORY UNIT OF WORK
# ============================================================================

class InMemoryStore:
    def __init__(self):
        self.orders: Dict[str, Order] = {}
        self.outbox: List[dict] = []
        self.inbox: List[dict] = []
        self.commits = 0
        # сколько следующих update завершатся конфликтом версий
        self.fail_next_updates = 0


class _Orders:
    def __init__(self, store: InMemoryStore, staged: Dict[str, Order]):
        self._store = store
        self._staged = staged

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        return self._staged.get(order_id) or self._store.orders.get(order_id)

    async def create(self, order: Order) -> Order:
        self._staged[order.id] = order
        return order

    async def update(self, order: Order) -> Order:
        current = await self.get_by_id(order.id)
        if self._store.fail_next_updates:
            self._store.fail_next_updates -= 1
            raise PersistenceConflictError(order.id, order.version)
        if current is None or current.version != order.version:
            raise PersistenceConflictError(order.id, order.version)
        stored = order.model_copy(update={"version": order.version + 1})
        self._staged[order.id] = stored
        return stored

    async def list_by_customer(self, customer_id: str) -> List[Order]:
        merged = {**self._store.orders, **self._staged}
        return [o for o in merged.values() if o.customer_id == customer_id]


class _Events:
    def __init__(self, rows: List[dict], ops: List[Callable[[], None]]):
        self._rows = rows
        self._ops = ops

    async def create(self, event_type: str, event_data: dict, order_id: str, idempotency_key: str = None) -> str:
        event_id = str(uuid.uuid4())
        row = {
            "id": event_id,
            "event_type": event_type,
            "event_data": event_data,
            "order_id": order_id,
            "idempotency_key": idempotency_key,
            "status": "pending",
        }
        self._ops.append(lambda: self._rows.append(row))
        return event_id

    async def get_pending(self, limit: int = 10) -> List[dict]:
        return [dict(r) for r in self._rows if r["status"] == "pending"][:limit]

    def _mark(self, event_id: str, status: str):
        def apply():
            for row in self._rows:
                if row["id"] == event_id:
                    row["status"] = status
        self._ops.append(apply)

    async def mark_as_published(self, event_id: str) -> None:
        self._mark(event_id, "published")

    async def mark_as_processed(self, event_id: str) -> None:
        self._mark(event_id, "processed")

    async def mark_as_failed(self, event_id: str) -> None:
        self._mark(event_id, "failed")

    async def is_known(self, idempotency_key: str) -> bool:
        return any(r["idempotency_key"] == idempotency_key for r in self._rows)


class _InMemoryUnitOfWorkImpl(UnitOfWork):
    def __init__(self, store: InMemoryStore):
        self._store = store
        self._staged: Dict[str, Order] = {}
        self._ops: List[Callable[[], None]] = []
        self.orders = _Orders(store, self._staged)
        self.outbox = _Events(store.outbox, self._ops)
        self.inbox = _Events(store.inbox, self._ops)

    async def commit(self):
        self._store.orders.update(self._staged)
        for op in self._ops:
            op()
        self._staged.clear()
        self._ops.clear()
        self._store.commits += 1

    async def rollback(self):
        self._staged.clear()
        self._ops.clear()


class InMemoryUnitOfWork:
    def __init__(self, store: InMemoryStore):
        self.store = store

    @asynccontextmanager
    async def __call__(self):
        impl = _InMemoryUnitOfWorkImpl(self.store)
        try:
            yield impl
            await impl.rollback()
        except Exception:
            await impl.rollback()
            raise


# ============================================================================
# COLLABORATORS
# ============================================================================

class FakeCatalog(CatalogService):
    def __init__(self, products: Dict[str, Product]):
        self.products = products

    async def get_product(self, product_id: str) -> Optional[Product]:
        return self.products.get(product_id)


class FakePaymentProcessor(PaymentProcessor):
    """Очередь заранее заданных исходов; по умолчанию списание успешно"""

    def __init__(self):
        self.charge_outcomes: List[ChargeOutcome] = []
        self.statuses: Dict[str, ChargeStatus] = {}
        self.charges: List[tuple] = []
        self.queries: List[str] = []
        self.on_charge = None

    async def charge(self, idempotency_key: str, order_id: str, amount: Decimal) -> ChargeOutcome:
        self.charges.append((idempotency_key, order_id, amount))
        if self.on_charge:
            await self.on_charge(idempotency_key, order_id)
        await asyncio.sleep(0)
        if self.charge_outcomes:
            return self.charge_outcomes.pop(0)
        return ChargeOutcome.SUCCEEDED

    async def query_status(self, idempotency_key: str) -> ChargeStatus:
        self.queries.append(idempotency_key)
        return self.statuses.get(idempotency_key, ChargeStatus.PENDING)


class FakePublisher(EventPublisher):
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.published: List[dict] = []

    async def publish_order_paid(self, order_id: str, product_id: str, quantity: int, idempotency_key: str) -> bool:
        if self.succeed:
            self.published.append({"order_id": order_id, "product_id": product_id, "quantity": quantity})
        return self.succeed


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def uow(store):
    return InMemoryUnitOfWork(store)


@pytest.fixture
def catalog():
    return FakeCatalog({
        "widget": Product(id="widget", name="Widget", price=Decimal("10.00")),
        "gadget": Product(id="gadget", name="Gadget", price=Decimal("4.50")),
    })


@pytest.fixture
def processor():
    return FakePaymentProcessor()


@pytest.fixture
def locks():
    return OrderLocks()


@dataclass
class Services:
    uow: InMemoryUnitOfWork
    processor: FakePaymentProcessor
    create: CreateOrderUseCase
    cancel: CancelOrderUseCase
    pay: PayOrderUseCase
    refresh: RefreshOrderUseCase
    get: GetOrderUseCase
    list: ListOrdersUseCase
    deliver: ConfirmDeliveryUseCase
    payment_update: ProcessPaymentUpdateUseCase

    async def new_order(self, product_id="widget", quantity=3, customer_id="customer-1") -> Order:
        return await self.create(CreateOrderDTO(customer_id=customer_id, product_id=product_id, quantity=quantity))

    async def pay_order(self, order_id: str, amount):
        return await self.pay(PayOrderDTO(order_id=order_id, amount=Decimal(amount)))


@pytest.fixture
def services(uow, catalog, processor, locks):
    coordinator = PaymentCoordinator(uow, processor)
    return Services(
        uow=uow,
        processor=processor,
        create=CreateOrderUseCase(uow, catalog),
        cancel=CancelOrderUseCase(uow, locks),
        pay=PayOrderUseCase(uow, coordinator, locks),
        refresh=RefreshOrderUseCase(uow, coordinator, locks),
        get=GetOrderUseCase(uow),
        list=ListOrdersUseCase(uow),
        deliver=ConfirmDeliveryUseCase(uow, locks),
        payment_update=ProcessPaymentUpdateUseCase(uow, coordinator, locks),
    )
