import logging
from decimal import Decimal
from pydantic import BaseModel

from order_lifecycle.domain.models import Order, OrderStatus, to_money
from order_lifecycle.domain.exceptions import ValidationError
from order_lifecycle.application.interfaces import ChargeOutcome, UnitOfWorkFactory
from order_lifecycle.application.locks import OrderLocks
from order_lifecycle.application.order_writer import OrderWriter
from order_lifecycle.application.payment_coordinator import PaymentCoordinator

logger = logging.getLogger(__name__)


class PaymentUpdateDTO(BaseModel):
    order_id: str
    idempotency_key: str
    status: str
    amount: Decimal


# Pending не меняет заказ: итог придет позже или будет получен через refresh
_REPORTED_OUTCOMES = {
    "Completed": ChargeOutcome.SUCCEEDED,
    "Failed": ChargeOutcome.FAILED,
    "Pending": None,
}


class ProcessPaymentUpdateUseCase:
    """Уведомление процессора об итоге попытки оплаты.

    Применяется только к текущей попытке заказа в статусе Processing.
    Повторная доставка и уведомления по старым ключам ничего не меняют.
    """

    def __init__(self, unit_of_work: UnitOfWorkFactory, coordinator: PaymentCoordinator, order_locks: OrderLocks):
        self._writer = OrderWriter(unit_of_work)
        self._coordinator = coordinator
        self._locks = order_locks

    async def __call__(self, dto: PaymentUpdateDTO) -> Order:
        logger.info(f"Обработка payment update: заказ {dto.order_id}, ключ {dto.idempotency_key}, {dto.status}")

        if dto.status not in _REPORTED_OUTCOMES:
            raise ValidationError(f"Неизвестный статус платежа {dto.status!r}")
        outcome = _REPORTED_OUTCOMES[dto.status]

        async with self._locks.hold(dto.order_id):
            order = await self._writer.load(dto.order_id)

            if order.status != OrderStatus.PROCESSING or order.payment_id != dto.idempotency_key:
                logger.info(
                    f"Payment update {dto.idempotency_key} не относится к текущей попытке заказа "
                    f"{order.id} ({order.status.value}, {order.payment_id}), пропуск"
                )
                return order

            if to_money(dto.amount) != order.total_amount:
                logger.warning(f"Payment update {dto.idempotency_key}: сумма {dto.amount} вместо {order.total_amount}")
                raise ValidationError(
                    f"Сумма {dto.amount} не совпадает с суммой заказа {order.total_amount}"
                )

            if outcome is None:
                return order

            result = await self._coordinator.apply_reported(order, outcome)

        logger.info(f"Заказ {dto.order_id} после payment update: {result.order.status.value}")
        return result.order
