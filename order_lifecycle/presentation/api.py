import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status

from order_lifecycle.database import AsyncSessionLocal
from order_lifecycle.presentation.auth import RequestContext, get_request_context
from order_lifecycle.presentation.schemas import (
    CreateOrderRequest, PayOrderRequest, PaymentUpdateRequest, OrderResponse, PaymentResponse, ErrorResponse
)
from order_lifecycle.application.create_order import CreateOrderUseCase, CreateOrderDTO
from order_lifecycle.application.cancel_order import CancelOrderUseCase
from order_lifecycle.application.pay_order import PayOrderUseCase, PayOrderDTO
from order_lifecycle.application.refresh_order import RefreshOrderUseCase
from order_lifecycle.application.process_payment_update import ProcessPaymentUpdateUseCase, PaymentUpdateDTO
from order_lifecycle.application.get_order import GetOrderUseCase, ListOrdersUseCase
from order_lifecycle.application.payment_coordinator import PaymentCoordinator
from order_lifecycle.domain.exceptions import (
    ValidationError, OrderNotFoundError, InvalidTransitionError, PersistenceConflictError,
    ProcessorUnavailableError, CatalogServiceError
)
from order_lifecycle.infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from order_lifecycle.infrastructure.http_clients import HTTPCatalogClient, HTTPPaymentProcessorClient
from order_lifecycle.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# Фабрики зависимостей, подменяются в тестах через dependency_overrides
def get_unit_of_work():
    return SQLAlchemyUnitOfWork(AsyncSessionLocal)


def get_catalog():
    return HTTPCatalogClient(settings.CATALOG_BASE_URL, settings.API_TOKEN)


def get_payment_processor():
    return HTTPPaymentProcessorClient(
        settings.PAYMENTS_BASE_URL, settings.API_TOKEN, timeout=settings.PAYMENT_TIMEOUT_SECONDS
    )


def get_order_locks(request: Request):
    return request.app.state.order_locks


def get_coordinator(uow=Depends(get_unit_of_work), processor=Depends(get_payment_processor)):
    return PaymentCoordinator(uow, processor)


def get_create_order_use_case(uow=Depends(get_unit_of_work), catalog=Depends(get_catalog)):
    return CreateOrderUseCase(uow, catalog)


def get_cancel_order_use_case(uow=Depends(get_unit_of_work), locks=Depends(get_order_locks)):
    return CancelOrderUseCase(uow, locks)


def get_pay_order_use_case(
    uow=Depends(get_unit_of_work), coordinator=Depends(get_coordinator), locks=Depends(get_order_locks)
):
    return PayOrderUseCase(uow, coordinator, locks)


def get_refresh_order_use_case(
    uow=Depends(get_unit_of_work), coordinator=Depends(get_coordinator), locks=Depends(get_order_locks)
):
    return RefreshOrderUseCase(uow, coordinator, locks)


def get_get_order_use_case(uow=Depends(get_unit_of_work)):
    return GetOrderUseCase(uow)


def get_list_orders_use_case(uow=Depends(get_unit_of_work)):
    return ListOrdersUseCase(uow)


def get_payment_update_use_case(
    uow=Depends(get_unit_of_work), coordinator=Depends(get_coordinator), locks=Depends(get_order_locks)
):
    return ProcessPaymentUpdateUseCase(uow, coordinator, locks)


# Конфликт версий временный: запрос можно повторить
RETRY_AFTER_SECONDS = "1"


def to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, OrderNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, InvalidTransitionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, PersistenceConflictError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
            headers={"Retry-After": RETRY_AFTER_SECONDS}
        )
    if isinstance(e, (ProcessorUnavailableError, CatalogServiceError)):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


DOMAIN_ERRORS = (
    ValidationError, OrderNotFoundError, InvalidTransitionError, PersistenceConflictError,
    ProcessorUnavailableError, CatalogServiceError
)


@router.post(
    "/orders",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    context: RequestContext = Depends(get_request_context),
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case)
):
    """Создать новый заказ"""
    customer_id = context.customer_id or request.customer_id
    if not customer_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Не указан customer_id")
    try:
        order = await use_case(CreateOrderDTO(
            customer_id=customer_id,
            product_id=request.product_id,
            quantity=request.quantity
        ))
        return OrderResponse.from_domain(order)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@router.get("/orders", response_model=List[OrderResponse], responses=ERROR_RESPONSES)
async def list_orders(
    customer_id: Optional[str] = None,
    context: RequestContext = Depends(get_request_context),
    use_case: ListOrdersUseCase = Depends(get_list_orders_use_case)
):
    """Заказы покупателя, новые первыми"""
    customer_id = context.customer_id or customer_id
    if not customer_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Не указан customer_id")
    orders = await use_case(customer_id)
    return [OrderResponse.from_domain(order) for order in orders]


@router.post("/orders/payment-update", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def payment_update(
    request: PaymentUpdateRequest,
    context: RequestContext = Depends(get_request_context),
    use_case: ProcessPaymentUpdateUseCase = Depends(get_payment_update_use_case)
):
    """Уведомление от Payment Processor об итоге попытки"""
    try:
        order = await use_case(PaymentUpdateDTO(
            order_id=request.order_id,
            idempotency_key=request.idempotency_key,
            status=request.status,
            amount=request.amount
        ))
        return OrderResponse.from_domain(order)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@router.get("/orders/{order_id}", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def get_order(
    order_id: str,
    context: RequestContext = Depends(get_request_context),
    use_case: GetOrderUseCase = Depends(get_get_order_use_case)
):
    """Получить заказ по ID"""
    try:
        return OrderResponse.from_domain(await use_case(order_id, context.customer_id))
    except OrderNotFoundError as e:
        raise to_http_error(e)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def cancel_order(
    order_id: str,
    context: RequestContext = Depends(get_request_context),
    owned: GetOrderUseCase = Depends(get_get_order_use_case),
    use_case: CancelOrderUseCase = Depends(get_cancel_order_use_case)
):
    """Отменить заказ"""
    try:
        await owned(order_id, context.customer_id)
        return OrderResponse.from_domain(await use_case(order_id))
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@router.post("/orders/{order_id}/pay", response_model=PaymentResponse, responses=ERROR_RESPONSES)
async def pay_order(
    order_id: str,
    request: PayOrderRequest,
    context: RequestContext = Depends(get_request_context),
    owned: GetOrderUseCase = Depends(get_get_order_use_case),
    use_case: PayOrderUseCase = Depends(get_pay_order_use_case)
):
    """Оплатить заказ. При reconcile_required итог получают через /refresh"""
    try:
        await owned(order_id, context.customer_id)
        result = await use_case(PayOrderDTO(order_id=order_id, amount=request.amount))
        return PaymentResponse.from_result(result)
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)


@router.post("/orders/{order_id}/refresh", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def refresh_order(
    order_id: str,
    context: RequestContext = Depends(get_request_context),
    owned: GetOrderUseCase = Depends(get_get_order_use_case),
    use_case: RefreshOrderUseCase = Depends(get_refresh_order_use_case)
):
    """Сверить статус оплаты с процессором"""
    try:
        await owned(order_id, context.customer_id)
        return OrderResponse.from_domain(await use_case(order_id))
    except DOMAIN_ERRORS as e:
        raise to_http_error(e)
