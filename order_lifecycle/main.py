import logging
import sys
from contextlib import asynccontextmanager
from fastapi import FastAPI

from order_lifecycle.presentation.api import router
from order_lifecycle.application.locks import OrderLocks
from order_lifecycle.database import create_tables

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    await create_tables()
    logger.info("Таблицы созданы")
    yield
    logger.info("Приложение останавливается...")


app = FastAPI(
    title="Order Lifecycle Service",
    description="Жизненный цикл заказа и сверка оплат",
    version="1.0.0",
    lifespan=lifespan
)
app.state.order_locks = OrderLocks()

app.include_router(router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "healthy"}
