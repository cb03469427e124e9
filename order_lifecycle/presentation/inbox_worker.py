import asyncio
import logging

from order_lifecycle.database import AsyncSessionLocal, create_tables
from order_lifecycle.infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from order_lifecycle.application.locks import OrderLocks
from order_lifecycle.application.confirm_delivery import ConfirmDeliveryUseCase
from order_lifecycle.application.process_inbox import ProcessInboxEventsUseCase

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def inbox_worker(interval: float = 2.0):
    """Worker для обработки inbox событий"""
    logger.info("Inbox worker запущен")

    uow = SQLAlchemyUnitOfWork(AsyncSessionLocal)
    use_case = ProcessInboxEventsUseCase(
        unit_of_work=uow,
        confirm_delivery=ConfirmDeliveryUseCase(uow, OrderLocks())
    )

    while True:
        try:
            processed = await use_case(limit=10)
            if processed:
                logger.info(f"Обработано {processed} inbox events")
            await asyncio.sleep(interval)

        except Exception as e:
            logger.error(f"Ошибка в inbox worker: {e}", exc_info=True)
            await asyncio.sleep(10)


async def main():
    await create_tables()
    await inbox_worker()


if __name__ == "__main__":
    asyncio.run(main())
