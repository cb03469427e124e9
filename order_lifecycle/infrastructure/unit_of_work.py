from contextlib import asynccontextmanager
from typing import AsyncIterator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_lifecycle.application.interfaces import UnitOfWork
from order_lifecycle.infrastructure.repositories import (
    SQLAlchemyOrderRepository,
    SQLAlchemyOutboxRepository,
    SQLAlchemyInboxRepository
)


class SessionUnitOfWork(UnitOfWork):
    """Репозитории заказа, outbox и inbox поверх одной сессии"""

    def __init__(self, session: AsyncSession):
        self._session = session
        self.orders = SQLAlchemyOrderRepository(session)
        self.outbox = SQLAlchemyOutboxRepository(session)
        self.inbox = SQLAlchemyInboxRepository(session)

    async def commit(self):
        await self._session.commit()

    async def rollback(self):
        await self._session.rollback()


class SQLAlchemyUnitOfWork:
    """Фабрика транзакций: `async with uow() as tx` открывает новую сессию"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator[UnitOfWork]:
        async with self._session_factory() as session:
            tx = SessionUnitOfWork(session)
            try:
                yield tx
            finally:
                # Незафиксированные изменения не переживают выход из блока
                await tx.rollback()
