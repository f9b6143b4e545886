"""
Domain error → HTTP error translation
"""

import logging

from fastapi import HTTPException

from portfolio_engine.domain.exceptions import (
    ConcurrentModificationError,
    InsufficientFundsError,
    NotFoundError,
    OverAllocationError,
    PortfolioEngineError,
    PriceUnavailableError,
    TransientStorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (ValidationError, 400),
    (InsufficientFundsError, 400),
    (NotFoundError, 404),
    (OverAllocationError, 409),
    (ConcurrentModificationError, 409),
    (TransientStorageError, 503),
    (PriceUnavailableError, 503),
)


def to_http_exception(exc: PortfolioEngineError) -> HTTPException:
    status_code = 500
    for exc_type, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            status_code = code
            break
    if status_code >= 500:
        logger.error(f"❌ {type(exc).__name__}: {exc}")
    else:
        logger.info(f"Rejected request: {type(exc).__name__}: {exc}")
    return HTTPException(status_code=status_code, detail=exc.to_detail())
