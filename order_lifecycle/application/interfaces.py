from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import AsyncContextManager, Callable, Optional, List
from order_lifecycle.domain.models import Order, Product


class ChargeOutcome(str, Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    INDETERMINATE = "Indeterminate"


class ChargeStatus(str, Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    PENDING = "Pending"
    NOT_FOUND = "NotFound"


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> Order:
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """Атомарная замена по id. PersistenceConflictError при несовпадении версии"""
        pass

    @abstractmethod
    async def list_by_customer(self, customer_id: str) -> List[Order]:
        pass


class OutboxRepository(ABC):
    @abstractmethod
    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        pass

    @abstractmethod
    async def get_pending(self, limit: int = 10) -> List[dict]:
        pass

    @abstractmethod
    async def mark_as_published(self, event_id: str) -> None:
        pass


class InboxRepository(ABC):
    @abstractmethod
    async def create(self, event_type: str, event_data: dict, order_id: str, idempotency_key: str) -> str:
        pass

    @abstractmethod
    async def get_pending(self, limit: int = 10) -> List[dict]:
        pass

    @abstractmethod
    async def mark_as_processed(self, event_id: str) -> None:
        pass

    @abstractmethod
    async def mark_as_failed(self, event_id: str) -> None:
        pass

    @abstractmethod
    async def is_known(self, idempotency_key: str) -> bool:
        pass


class UnitOfWork(ABC):
    """Одна транзакция: все, что не зафиксировано через commit, откатывается"""

    orders: OrderRepository
    outbox: OutboxRepository
    inbox: InboxRepository

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


# Use cases получают фабрику: каждый вызов открывает новую транзакцию
UnitOfWorkFactory = Callable[[], AsyncContextManager[UnitOfWork]]


class CatalogService(ABC):
    @abstractmethod
    async def get_product(self, product_id: str) -> Optional[Product]:
        pass


class PaymentProcessor(ABC):
    @abstractmethod
    async def charge(self, idempotency_key: str, order_id: str, amount: Decimal) -> ChargeOutcome:
        """Идемпотентное списание: повтор с тем же ключом не создает второй платеж"""
        pass

    @abstractmethod
    async def query_status(self, idempotency_key: str) -> ChargeStatus:
        pass


class EventPublisher(ABC):
    @abstractmethod
    async def publish_order_paid(self, order_id: str, product_id: str, quantity: int, idempotency_key: str) -> bool:
        pass
