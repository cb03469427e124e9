import asyncio
import logging

from order_lifecycle.database import AsyncSessionLocal, create_tables
from order_lifecycle.infrastructure.kafka_consumer import KafkaConsumerClient
from order_lifecycle.infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from order_lifecycle.config import settings

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def handle_shipment_event(event_data: dict, unit_of_work=None):
    """Сохраняет событие от Shipping Service в inbox"""
    unit_of_work = unit_of_work or SQLAlchemyUnitOfWork(AsyncSessionLocal)
    event_type = event_data.get("event_type")
    order_id = event_data.get("order_id")
    if not event_type or not order_id:
        logger.warning(f"Событие без event_type/order_id пропущено: {event_data}")
        return

    idempotency_key = f"{event_type}_{order_id}"
    logger.info(f"Получено {event_type} для заказа {order_id}")

    async with unit_of_work() as uow:
        # Проверяем, не сохраняли ли уже
        if await uow.inbox.is_known(idempotency_key):
            logger.info(f"Событие {idempotency_key} уже получено")
            return

        await uow.inbox.create(
            event_type=event_type,
            event_data=event_data,
            order_id=order_id,
            idempotency_key=idempotency_key
        )
        await uow.commit()
        logger.info(f"Сохранено {event_type} inbox для заказа {order_id}")


async def shipping_consumer():
    """Consumer для событий от Shipping Service"""
    logger.info("Shipping consumer started")

    consumer = KafkaConsumerClient(settings.KAFKA_BOOTSTRAP_SERVERS, settings.KAFKA_SHIPMENT_TOPIC)
    await consumer.start()

    try:
        await consumer.consume(handle_shipment_event)
    finally:
        await consumer.stop()


async def main():
    await create_tables()
    await shipping_consumer()


if __name__ == "__main__":
    asyncio.run(main())
