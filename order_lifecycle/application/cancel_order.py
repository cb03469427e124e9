import logging

from order_lifecycle.domain.models import Order
from order_lifecycle.domain.exceptions import InvalidTransitionError
from order_lifecycle.domain.state_machine import OrderEvent, apply_event
from order_lifecycle.application.locks import OrderLocks
from order_lifecycle.application.order_writer import OrderWriter

logger = logging.getLogger(__name__)


class CancelOrderUseCase:
    def __init__(self, unit_of_work, order_locks: OrderLocks):
        self._writer = OrderWriter(unit_of_work)
        self._locks = order_locks

    async def __call__(self, order_id: str) -> Order:
        logger.info(f"Отмена заказа {order_id}")
        async with self._locks.hold(order_id):
            try:
                return await self._writer.apply(
                    order_id, lambda o: apply_event(o, OrderEvent.CANCEL_REQUESTED)
                )
            except InvalidTransitionError as e:
                logger.warning(f"Заказ {order_id} не может быть отменен: {e}")
                raise
