import logging

from order_lifecycle.domain.models import OrderStatus
from order_lifecycle.domain.exceptions import InvalidTransitionError, OrderNotFoundError
from order_lifecycle.application.confirm_delivery import ConfirmDeliveryUseCase
from order_lifecycle.application.interfaces import UnitOfWorkFactory

logger = logging.getLogger(__name__)


class ProcessInboxEventsUseCase:
    def __init__(self, unit_of_work: UnitOfWorkFactory, confirm_delivery: ConfirmDeliveryUseCase):
        self._uow = unit_of_work
        self._confirm_delivery = confirm_delivery

    async def __call__(self, limit: int = 10) -> int:
        """Обрабатывает pending события из inbox. Возвращает количество обработанных."""
        async with self._uow() as uow:
            pending = await uow.inbox.get_pending(limit=limit)

        if not pending:
            return 0

        logger.info(f"Обработка {len(pending)} inbox events")
        processed = 0

        for event in pending:
            event_id = event["id"]
            order_id = event["order_id"]
            status = "processed"

            if event["event_type"] == "order.delivered":
                try:
                    await self._confirm_delivery(order_id)
                    processed += 1
                except InvalidTransitionError as e:
                    if e.status == OrderStatus.DELIVERED:
                        logger.info(f"Заказ {order_id} уже Delivered, повторное событие {event_id}")
                    else:
                        logger.warning(f"Inbox event {event_id} отклонен: {e}")
                        status = "failed"
                except OrderNotFoundError as e:
                    logger.warning(f"Inbox event {event_id} отклонен: {e}")
                    status = "failed"
            else:
                logger.warning(f"Неизвестный тип inbox event {event['event_type']}")
                status = "failed"

            # Отметка события пишется отдельной транзакцией после перехода заказа
            async with self._uow() as uow:
                if status == "processed":
                    await uow.inbox.mark_as_processed(event_id)
                else:
                    await uow.inbox.mark_as_failed(event_id)
                await uow.commit()

        return processed
