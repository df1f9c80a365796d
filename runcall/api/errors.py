from fastapi import HTTPException

from runcall.application.exceptions import (
    AuthError,
    NotFoundError,
    PaymentError,
    ProviderError,
    ReconciliationError,
    ValidationError,
)

STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (AuthError, 401),
    (ReconciliationError, 503),
    (ProviderError, 502),
    (PaymentError, 502),
)


def to_http(error: Exception) -> HTTPException:
    for error_cls, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_cls):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail="Internal error")


DOMAIN_ERRORS = tuple(error_cls for error_cls, _ in STATUS_BY_ERROR)
