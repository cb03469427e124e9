class DomainException(Exception):
    pass


class ValidationError(DomainException):
    """Некорректные входные данные: количество, сумма, имя события"""
    pass


class ProductNotFoundError(ValidationError):
    pass


class OrderNotFoundError(DomainException):
    pass


class InvalidTransitionError(DomainException):
    def __init__(self, status, event, reason: str | None = None):
        self.status = status
        self.event = event
        self.reason = reason
        message = f"Переход {getattr(event, 'value', event)} недопустим из статуса {getattr(status, 'value', status)}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class CatalogServiceError(DomainException):
    pass


class ProcessorUnavailableError(DomainException):
    pass


class PersistenceConflictError(DomainException):
    def __init__(self, order_id: str, expected_version: int):
        self.order_id = order_id
        self.expected_version = expected_version
        super().__init__(f"Заказ {order_id} изменен параллельно (ожидалась версия {expected_version})")
