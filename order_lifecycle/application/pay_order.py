import logging
from decimal import Decimal
from pydantic import BaseModel

from order_lifecycle.domain.exceptions import InvalidTransitionError
from order_lifecycle.domain.models import OrderStatus
from order_lifecycle.domain.state_machine import OrderEvent
from order_lifecycle.application.locks import OrderLocks
from order_lifecycle.application.order_writer import OrderWriter
from order_lifecycle.application.payment_coordinator import PaymentCoordinator, PaymentResult

logger = logging.getLogger(__name__)


class PayOrderDTO(BaseModel):
    order_id: str
    amount: Decimal


class PayOrderUseCase:
    def __init__(self, unit_of_work, coordinator: PaymentCoordinator, order_locks: OrderLocks):
        self._writer = OrderWriter(unit_of_work)
        self._coordinator = coordinator
        self._locks = order_locks

    async def __call__(self, dto: PayOrderDTO) -> PaymentResult:
        logger.info(f"Оплата заказа {dto.order_id} на сумму {dto.amount}")

        # Блокировка держится на всем initiate-then-persist
        async with self._locks.hold(dto.order_id):
            order = await self._writer.load(dto.order_id)
            if order.status == OrderStatus.PROCESSING:
                # Повтор после Indeterminate идет через refresh, а не через новое списание
                logger.warning(f"Заказ {order.id} уже в оплате, требуется refresh")
                raise InvalidTransitionError(
                    order.status, OrderEvent.PAYMENT_INITIATED, "оплата уже выполняется, используйте refresh"
                )

            result = await self._coordinator.initiate(dto.order_id, dto.amount)

        if result.reconcile_required:
            logger.info(f"Заказ {dto.order_id} ожидает сверки через refresh")
        else:
            logger.info(f"Оплата заказа {dto.order_id} завершена: {result.outcome.value}")
        return result
