import logging

from order_lifecycle.domain.models import Order
from order_lifecycle.application.locks import OrderLocks
from order_lifecycle.application.order_writer import OrderWriter
from order_lifecycle.application.payment_coordinator import PaymentCoordinator

logger = logging.getLogger(__name__)


class RefreshOrderUseCase:
    """Сверка заказа с процессором после неизвестного итога оплаты.

    Идемпотентна: вне статуса Processing ничего не меняет.
    """

    def __init__(self, unit_of_work, coordinator: PaymentCoordinator, order_locks: OrderLocks):
        self._writer = OrderWriter(unit_of_work)
        self._coordinator = coordinator
        self._locks = order_locks

    async def __call__(self, order_id: str) -> Order:
        async with self._locks.hold(order_id):
            order = await self._writer.load(order_id)
            if not order.awaits_payment_outcome():
                logger.info(f"Заказ {order_id} не ожидает итога оплаты ({order.status.value}), refresh пропущен")
                return order

            result = await self._coordinator.resolve(order)
            if result.reconcile_required:
                logger.info(f"Платеж по заказу {order_id} все еще в обработке")
            return result.order
