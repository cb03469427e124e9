import logging
from pydantic import BaseModel

from order_lifecycle.domain.models import Order
from order_lifecycle.domain.exceptions import ProductNotFoundError, ValidationError
from order_lifecycle.domain.state_machine import new_order
from order_lifecycle.application.interfaces import CatalogService
from order_lifecycle.application.order_writer import OrderWriter


logger = logging.getLogger(__name__)


class CreateOrderDTO(BaseModel):
    customer_id: str
    product_id: str
    quantity: int


class CreateOrderUseCase:
    def __init__(self, unit_of_work, catalog_service: CatalogService):
        self._writer = OrderWriter(unit_of_work)
        self._catalog = catalog_service

    async def __call__(self, order_data: CreateOrderDTO) -> Order:
        logger.info(f"Создание заказа для покупателя {order_data.customer_id}, product {order_data.product_id}")

        # 1. Проверка входных данных до обращения к каталогу
        if order_data.quantity <= 0:
            raise ValidationError(f"Количество должно быть положительным, получено {order_data.quantity}")

        # 2. Проверка каталога
        product = await self._catalog.get_product(order_data.product_id)
        if not product:
            raise ProductNotFoundError(f"Товар {order_data.product_id} не найден")

        # 3. Создание заказа, сумма фиксируется по текущей цене
        order = new_order(order_data.customer_id, product, order_data.quantity)
        order = await self._writer.create(order)
        logger.info(f"Заказ создан: {order.id}, сумма {order.total_amount}")
        return order
