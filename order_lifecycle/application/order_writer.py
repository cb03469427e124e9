import logging
from typing import Callable

from order_lifecycle.domain.models import Order, OrderStatus
from order_lifecycle.domain.exceptions import OrderNotFoundError, PersistenceConflictError
from order_lifecycle.application.interfaces import UnitOfWorkFactory

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class OrderWriter:
    """Загрузка, чистое изменение и сохранение заказа в одной транзакции.

    Статус, timeline и событие outbox пишутся вместе или не пишутся вовсе.
    При конфликте версий заказ перечитывается и изменение применяется
    повторно один раз.
    """

    def __init__(self, unit_of_work: UnitOfWorkFactory):
        self._uow = unit_of_work

    async def load(self, order_id: str) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")
            return order

    async def create(self, order: Order) -> Order:
        async with self._uow() as uow:
            await uow.orders.create(order)
            # Клиент получает заказ в том виде, в котором он сохранен
            stored = await uow.orders.get_by_id(order.id)
            await uow.commit()
            return stored

    async def apply(self, order_id: str, change: Callable[[Order], Order]) -> Order:
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                async with self._uow() as uow:
                    order = await uow.orders.get_by_id(order_id)
                    if not order:
                        raise OrderNotFoundError(f"Заказ {order_id} не найден")

                    updated = change(order)
                    if updated is order:
                        return order

                    stored = await uow.orders.update(updated)
                    if stored.status != order.status and stored.status == OrderStatus.CONFIRMED:
                        # Событие для Shipping Service
                        await uow.outbox.create(
                            event_type="order.paid",
                            event_data={
                                "order_id": stored.id,
                                "product_id": stored.product.id,
                                "quantity": stored.quantity,
                                "idempotency_key": f"order_paid_{stored.id}"
                            },
                            order_id=stored.id
                        )
                    await uow.commit()
                    logger.info(f"Заказ {order_id}: {order.status.value} -> {stored.status.value}")
                    return stored

            except PersistenceConflictError:
                if attempt == MAX_ATTEMPTS:
                    logger.error(f"Повторный конфликт версий для заказа {order_id}")
                    raise
                logger.warning(f"Конфликт версий для заказа {order_id}, повтор с перечитыванием")
