import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict

logger = logging.getLogger(__name__)


class OrderLocks:
    """Эксклюзивная блокировка на заказ.

    Все read-modify-write по одному заказу выполняются под его блокировкой.
    Блокировка другого заказа внутри удерживаемой не берется.
    Между процессами защищает версия заказа в хранилище.
    Запись удаляется из реестра, когда заказ больше никто не ждет.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, order_id: str):
        lock = self._locks.setdefault(order_id, asyncio.Lock())
        self._holders[order_id] = self._holders.get(order_id, 0) + 1
        try:
            if lock.locked():
                logger.info(f"Заказ {order_id} занят, ожидание блокировки")
            async with lock:
                yield
        finally:
            self._holders[order_id] -= 1
            if not self._holders[order_id]:
                del self._holders[order_id]
                del self._locks[order_id]
