import asyncio
import logging

from order_lifecycle.database import AsyncSessionLocal, create_tables
from order_lifecycle.infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from order_lifecycle.infrastructure.kafka_producer import KafkaProducerClient
from order_lifecycle.application.process_outbox import ProcessOutboxEventsUseCase
from order_lifecycle.config import settings

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def outbox_worker(interval: float = 3.0):
    """Worker для публикации outbox событий"""
    logger.info("Outbox worker запущен")

    producer = KafkaProducerClient(settings.KAFKA_BOOTSTRAP_SERVERS, settings.KAFKA_ORDER_TOPIC)
    await producer.start()
    use_case = ProcessOutboxEventsUseCase(unit_of_work=SQLAlchemyUnitOfWork(AsyncSessionLocal), publisher=producer)

    try:
        while True:
            try:
                published = await use_case(limit=5)
                if published:
                    logger.info(f"Опубликовано {published} outbox events")
                await asyncio.sleep(interval)

            except Exception as e:
                logger.error(f"Ошибка в outbox worker: {e}", exc_info=True)
                await asyncio.sleep(10)
    finally:
        await producer.stop()


async def main():
    await create_tables()
    await outbox_worker()


if __name__ == "__main__":
    asyncio.run(main())
