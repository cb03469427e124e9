import logging

from order_lifecycle.domain.models import Order
from order_lifecycle.domain.state_machine import OrderEvent, apply_event
from order_lifecycle.application.locks import OrderLocks
from order_lifecycle.application.order_writer import OrderWriter

logger = logging.getLogger(__name__)


class ConfirmDeliveryUseCase:
    """Внешнее подтверждение доставки: Confirmed -> Delivered"""

    def __init__(self, unit_of_work, order_locks: OrderLocks):
        self._writer = OrderWriter(unit_of_work)
        self._locks = order_locks

    async def __call__(self, order_id: str) -> Order:
        async with self._locks.hold(order_id):
            order = await self._writer.apply(
                order_id, lambda o: apply_event(o, OrderEvent.DELIVERY_CONFIRMED)
            )
        logger.info(f"Заказ {order_id} отмечен Delivered")
        return order
