import uuid
from decimal import Decimal
from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy import Table, select, insert, update
from sqlalchemy.ext.asyncio import AsyncSession

from order_lifecycle.domain.models import Order, OrderStatus, Product, TimelineEvent
from order_lifecycle.domain.exceptions import PersistenceConflictError
from order_lifecycle.infrastructure.db_schema import orders_tbl, outbox_events_tbl, inbox_events_tbl
from order_lifecycle.application.interfaces import OrderRepository, OutboxRepository, InboxRepository


PENDING = "pending"


def _aware(value: datetime) -> datetime:
    # SQLite возвращает naive datetime
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def list_by_customer(self, customer_id: str) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl)
            .where(orders_tbl.c.customer_id == customer_id)
            .order_by(orders_tbl.c.created_at.desc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def create(self, order: Order) -> Order:
        stmt = insert(orders_tbl).values(
            id=order.id,
            customer_id=order.customer_id,
            product_id=order.product.id,
            product_name=order.product.name,
            unit_price=order.product.price,
            quantity=order.quantity,
            total_amount=order.total_amount,
            status=order.status.value,
            payment_id=order.payment_id,
            payment_attempt=order.payment_attempt,
            timeline=self._timeline_to_db(order.timeline),
            version=order.version,
            created_at=order.created_at,
            updated_at=order.updated_at
        )
        await self._session.execute(stmt)
        return order

    async def update(self, order: Order) -> Order:
        """Заменяет изменяемые поля заказа. Товар, количество и сумма не перезаписываются"""
        stmt = (
            update(orders_tbl)
            .where(
                orders_tbl.c.id == order.id,
                orders_tbl.c.version == order.version
            )
            .values(
                status=order.status.value,
                payment_id=order.payment_id,
                payment_attempt=order.payment_attempt,
                timeline=self._timeline_to_db(order.timeline),
                version=order.version + 1,
                updated_at=order.updated_at
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            raise PersistenceConflictError(order.id, order.version)
        return order.model_copy(update={"version": order.version + 1})

    @staticmethod
    def _timeline_to_db(timeline: List[TimelineEvent]) -> list:
        return [event.model_dump(mode="json") for event in timeline]

    def _to_domain(self, row) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            customer_id=row.customer_id,
            product=Product(id=row.product_id, name=row.product_name, price=Decimal(row.unit_price)),
            quantity=row.quantity,
            total_amount=Decimal(row.total_amount),
            status=OrderStatus(row.status),
            payment_id=row.payment_id,
            payment_attempt=row.payment_attempt,
            timeline=[TimelineEvent.model_validate(item) for item in row.timeline],
            version=row.version,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at)
        )


class _SQLAlchemyEventLog:
    """Общая часть outbox и inbox: журнал событий со статусом обработки"""

    table: Table

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _append(self, **values) -> str:
        event_id = str(uuid.uuid4())
        await self._session.execute(
            insert(self.table).values(id=event_id, status=PENDING, **values)
        )
        return event_id

    async def get_pending(self, limit: int = 10) -> List[dict]:
        """Старые события первыми"""
        result = await self._session.execute(
            select(self.table)
            .where(self.table.c.status == PENDING)
            .order_by(self.table.c.created_at.asc())
            .limit(limit)
        )
        return [dict(row._mapping) for row in result.fetchall()]

    async def _set_status(self, event_id: str, status: str, **values) -> None:
        await self._session.execute(
            update(self.table)
            .where(self.table.c.id == event_id)
            .values(status=status, **values)
        )


class SQLAlchemyOutboxRepository(_SQLAlchemyEventLog, OutboxRepository):
    table = outbox_events_tbl

    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        return await self._append(event_type=event_type, event_data=event_data, order_id=order_id)

    async def mark_as_published(self, event_id: str) -> None:
        await self._set_status(event_id, "published")


class SQLAlchemyInboxRepository(_SQLAlchemyEventLog, InboxRepository):
    table = inbox_events_tbl

    async def create(self, event_type: str, event_data: dict, order_id: str, idempotency_key: str) -> str:
        return await self._append(
            event_type=event_type, event_data=event_data, order_id=order_id, idempotency_key=idempotency_key
        )

    async def mark_as_processed(self, event_id: str) -> None:
        await self._set_status(event_id, "processed", processed_at=datetime.now(timezone.utc))

    async def mark_as_failed(self, event_id: str) -> None:
        await self._set_status(event_id, "failed")

    async def is_known(self, idempotency_key: str) -> bool:
        result = await self._session.execute(
            select(self.table.c.id).where(self.table.c.idempotency_key == idempotency_key)
        )
        return result.first() is not None
