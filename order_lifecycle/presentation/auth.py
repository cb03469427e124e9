import logging
import secrets
from typing import Optional
from fastapi import Header, HTTPException, status
from pydantic import BaseModel

from order_lifecycle.config import settings

logger = logging.getLogger(__name__)


class RequestContext(BaseModel):
    """Учетные данные вызывающего. Передаются явно в обработчик, глобально не хранятся.

    X-API-Key допускает сервис. С X-Customer-Id вызывающий видит и меняет
    только свои заказы; без него действует от имени сервиса.
    """
    customer_id: Optional[str] = None


def get_request_context(
    x_api_key: Optional[str] = Header(default=None),
    x_customer_id: Optional[str] = Header(default=None),
) -> RequestContext:
    if settings.API_TOKEN and not secrets.compare_digest(x_api_key or "", settings.API_TOKEN):
        logger.warning("Запрос с неверным X-API-Key")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Неверный API ключ")
    return RequestContext(customer_id=x_customer_id)
