import logging
import json

from order_lifecycle.application.interfaces import EventPublisher, UnitOfWorkFactory

logger = logging.getLogger(__name__)


class ProcessOutboxEventsUseCase:
    def __init__(self, unit_of_work: UnitOfWorkFactory, publisher: EventPublisher):
        self._uow = unit_of_work
        self._publisher = publisher

    async def __call__(self, limit: int = 5) -> int:
        """Публикует pending события из outbox. Возвращает количество опубликованных."""
        published = 0

        async with self._uow() as uow:
            pending = await uow.outbox.get_pending(limit=limit)

            for event in pending:
                try:
                    event_data = event["event_data"]
                    if isinstance(event_data, str):
                        event_data = json.loads(event_data)

                    if event["event_type"] != "order.paid":
                        logger.warning(f"Неизвестный тип outbox event {event['event_type']}, пропуск")
                        continue

                    success = await self._publisher.publish_order_paid(
                        order_id=event_data["order_id"],
                        product_id=event_data["product_id"],
                        quantity=event_data["quantity"],
                        idempotency_key=event_data["idempotency_key"]
                    )
                    if success:
                        await uow.outbox.mark_as_published(event["id"])
                        published += 1
                        logger.info(f"Опубликовано order.paid event {event['id']}")
                    else:
                        logger.warning(f"Не удалось опубликовать order.paid event {event['id']}, повтор позже")
                except Exception as e:
                    logger.error(f"Ошибка обработки outbox event {event['id']}: {e}", exc_info=True)

            await uow.commit()

        return published
