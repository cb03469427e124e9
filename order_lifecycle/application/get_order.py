from typing import List, Optional

from order_lifecycle.domain.models import Order
from order_lifecycle.domain.exceptions import OrderNotFoundError


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, customer_id: Optional[str] = None) -> Order:
        """С customer_id чужой заказ неотличим от несуществующего"""
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order or (customer_id is not None and order.customer_id != customer_id):
                raise OrderNotFoundError(f"Заказ {order_id} не найден")
            return order


class ListOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, customer_id: str) -> List[Order]:
        async with self._uow() as uow:
            orders = await uow.orders.list_by_customer(customer_id)
            return sorted(orders, key=lambda o: o.created_at, reverse=True)
