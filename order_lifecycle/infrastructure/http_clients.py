import httpx
import logging
from decimal import Decimal
from typing import Optional

from order_lifecycle.domain.models import Product
from order_lifecycle.domain.exceptions import CatalogServiceError, ProcessorUnavailableError
from order_lifecycle.application.interfaces import (
    CatalogService, PaymentProcessor, ChargeOutcome, ChargeStatus
)

logger = logging.getLogger(__name__)


def _json_object(response: httpx.Response) -> Optional[dict]:
    """Тело ответа как JSON-объект; None, если это не JSON или не объект"""
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _reported_status(response: httpx.Response) -> Optional[str]:
    status = (_json_object(response) or {}).get("status")
    return status if isinstance(status, str) else None


class HTTPCatalogClient(CatalogService):
    def __init__(self, base_url: str, api_token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._base_url = base_url
        self._api_token = api_token
        self._transport = transport

    async def get_product(self, product_id: str) -> Optional[Product]:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    f"{self._base_url}/api/catalog/products/{product_id}",
                    headers={"X-API-Key": self._api_token},
                    timeout=10.0
                )

                if response.status_code == 200:
                    data = _json_object(response)
                    try:
                        return Product(id=data["id"], name=data["name"], price=Decimal(str(data["price"])))
                    except (TypeError, KeyError, ArithmeticError, ValueError):
                        logger.error(f"Catalog service вернул некорректный товар {product_id}: {response.text[:200]}")
                        raise CatalogServiceError(f"Catalog service вернул некорректный ответ для {product_id}")
                elif response.status_code == 404:
                    return None
                else:
                    raise CatalogServiceError(f"Catalog service ошибка: {response.status_code}")

        except httpx.RequestError as e:
            logger.error(f"Catalog service ошибка подключения: {e}")
            raise CatalogServiceError(f"Catalog service не доступен: {str(e)}")


# Статусы транзакций процессора
_CHARGE_OUTCOMES = {
    "Completed": ChargeOutcome.SUCCEEDED,
    "Failed": ChargeOutcome.FAILED,
    "Pending": ChargeOutcome.INDETERMINATE,
}

_QUERY_STATUSES = {
    "Completed": ChargeStatus.SUCCEEDED,
    "Failed": ChargeStatus.FAILED,
    "Pending": ChargeStatus.PENDING,
}


class HTTPPaymentProcessorClient(PaymentProcessor):
    """Клиент платежного процессора.

    charge никогда не угадывает: таймаут, обрыв связи, 5xx и нечитаемый
    ответ дают Indeterminate.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._base_url = base_url
        self._api_token = api_token
        self._timeout = timeout
        self._transport = transport

    def _headers(self, idempotency_key: str) -> dict:
        return {
            "X-API-Key": self._api_token,
            "Idempotency-Key": idempotency_key,
            "Content-Type": "application/json"
        }

    async def charge(self, idempotency_key: str, order_id: str, amount: Decimal) -> ChargeOutcome:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    f"{self._base_url}/payments",
                    json={
                        "order_id": order_id,
                        "amount": str(amount),
                        "idempotency_key": idempotency_key
                    },
                    headers=self._headers(idempotency_key),
                    timeout=self._timeout
                )
        except httpx.RequestError as e:
            logger.warning(f"Payment processor не ответил для {idempotency_key}: {e}")
            return ChargeOutcome.INDETERMINATE

        if response.status_code in (200, 201):
            status = _reported_status(response)
            outcome = _CHARGE_OUTCOMES.get(status)
            if outcome is None:
                logger.warning(f"Неизвестный статус транзакции {status!r} для {idempotency_key}")
                return ChargeOutcome.INDETERMINATE
            return outcome
        if response.status_code >= 500:
            logger.warning(f"Payment processor ошибка {response.status_code} для {idempotency_key}")
            return ChargeOutcome.INDETERMINATE

        # 4xx: процессор отклонил запрос, списания не было
        logger.warning(f"Payment processor отклонил {idempotency_key}: {response.status_code}")
        return ChargeOutcome.FAILED

    async def query_status(self, idempotency_key: str) -> ChargeStatus:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    f"{self._base_url}/payments/{idempotency_key}",
                    headers=self._headers(idempotency_key),
                    timeout=self._timeout
                )
        except httpx.RequestError as e:
            logger.error(f"Payment processor ошибка подключения: {e}")
            raise ProcessorUnavailableError(f"Payment processor не доступен: {str(e)}")

        if response.status_code == 404:
            return ChargeStatus.NOT_FOUND
        if response.status_code != 200:
            raise ProcessorUnavailableError(f"Payment processor ошибка: {response.status_code}")

        status = _reported_status(response)
        if status not in _QUERY_STATUSES:
            raise ProcessorUnavailableError(f"Неизвестный статус транзакции {status!r}")
        return _QUERY_STATUSES[status]
