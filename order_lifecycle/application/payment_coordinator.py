import logging
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel

from order_lifecycle.domain.models import Order, PaymentAttempt, AttemptOutcome
from order_lifecycle.domain.state_machine import OrderEvent, apply_event
from order_lifecycle.application.interfaces import PaymentProcessor, ChargeOutcome, ChargeStatus, UnitOfWorkFactory
from order_lifecycle.application.order_writer import OrderWriter

logger = logging.getLogger(__name__)


class PaymentResult(BaseModel):
    order: Order
    outcome: ChargeOutcome
    attempt: Optional[PaymentAttempt] = None

    @property
    def reconcile_required(self) -> bool:
        return self.outcome == ChargeOutcome.INDETERMINATE


_OUTCOME_EVENTS = {
    ChargeOutcome.SUCCEEDED: (OrderEvent.PAYMENT_SUCCEEDED, AttemptOutcome.SUCCEEDED),
    ChargeOutcome.FAILED: (OrderEvent.PAYMENT_FAILED, AttemptOutcome.FAILED),
}


class PaymentCoordinator:
    """Проводит оплату заказа через внешний процессор и классифицирует результат.

    Вызывающий отвечает за блокировку заказа на все время initiate/resolve.
    """

    def __init__(self, unit_of_work: UnitOfWorkFactory, processor: PaymentProcessor):
        self._writer = OrderWriter(unit_of_work)
        self._processor = processor

    async def initiate(self, order_id: str, amount: Decimal) -> PaymentResult:
        # Processing фиксируется до обращения к процессору:
        # падение во время вызова оставляет наблюдаемое промежуточное состояние
        order = await self._writer.apply(
            order_id,
            lambda o: apply_event(o, OrderEvent.PAYMENT_INITIATED, amount=amount)
        )
        attempt = PaymentAttempt(idempotency_key=order.payment_id, amount=order.total_amount)
        logger.info(f"Оплата заказа {order_id}: попытка {order.payment_attempt}, ключ {attempt.idempotency_key}")

        outcome = await self._processor.charge(attempt.idempotency_key, order.id, attempt.amount)
        return await self._settle(order, attempt, outcome, supersede_processing=False)

    async def resolve(self, order: Order) -> PaymentResult:
        """Запрашивает итог висящей попытки по тому же ключу идемпотентности"""
        attempt = PaymentAttempt(idempotency_key=order.payment_id, amount=order.total_amount)
        status = await self._processor.query_status(attempt.idempotency_key)
        logger.info(f"Статус платежа {attempt.idempotency_key} для заказа {order.id}: {status.value}")

        if status == ChargeStatus.PENDING:
            return PaymentResult(order=order, outcome=ChargeOutcome.INDETERMINATE, attempt=attempt)

        if status == ChargeStatus.NOT_FOUND:
            # Процессор не получал попытку; повтор с тем же ключом безопасен
            logger.warning(f"Попытка {attempt.idempotency_key} неизвестна процессору, повторная отправка")
            outcome = await self._processor.charge(attempt.idempotency_key, order.id, attempt.amount)
        elif status == ChargeStatus.SUCCEEDED:
            outcome = ChargeOutcome.SUCCEEDED
        else:
            outcome = ChargeOutcome.FAILED

        return await self._settle(order, attempt, outcome, supersede_processing=True)

    async def apply_reported(self, order: Order, outcome: ChargeOutcome) -> PaymentResult:
        """Итог текущей попытки, присланный процессором без запроса"""
        attempt = PaymentAttempt(idempotency_key=order.payment_id, amount=order.total_amount)
        return await self._settle(order, attempt, outcome, supersede_processing=True)

    async def _settle(
        self, order: Order, attempt: PaymentAttempt, outcome: ChargeOutcome, supersede_processing: bool
    ) -> PaymentResult:
        if outcome == ChargeOutcome.INDETERMINATE:
            logger.warning(f"Итог оплаты заказа {order.id} неизвестен, заказ остается Processing до сверки")
            return PaymentResult(order=order, outcome=outcome, attempt=attempt)

        event, attempt_outcome = _OUTCOME_EVENTS[outcome]
        settled = await self._writer.apply(
            order.id,
            lambda o: apply_event(
                o, event,
                idempotency_key=attempt.idempotency_key,
                supersede_processing=supersede_processing
            )
        )
        attempt = attempt.model_copy(update={"outcome": attempt_outcome})
        return PaymentResult(order=settled, outcome=outcome, attempt=attempt)
