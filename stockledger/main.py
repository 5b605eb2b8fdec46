import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockledger.api.routes.batches import router as batches_router
from stockledger.api.routes.catalog import router as catalog_router
from stockledger.api.routes.inventory import router as inventory_router
from stockledger.api.routes.ledger import router as ledger_router
from stockledger.api.routes.orders import router as orders_router
from stockledger.api.routes.purchases import router as purchases_router
from stockledger.core.config import settings
from stockledger.core.errors import (
    ConcurrencyConflictError,
    InsufficientStockError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from stockledger.core.logging_config import configure_logging

configure_logging(settings.log_level, settings.log_json)
logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[LedgerError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InsufficientStockError: status.HTTP_409_CONFLICT,
    InvalidStateError: status.HTTP_409_CONFLICT,
    ConcurrencyConflictError: status.HTTP_409_CONFLICT,
}


def status_for(exc: LedgerError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return status.HTTP_400_BAD_REQUEST


app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = status_for(exc)
    if isinstance(exc, ConcurrencyConflictError):
        logger.warning("request failed with a concurrency conflict", extra={"path": request.url.path, **exc.context})
    else:
        logger.info(
            "request rejected",
            extra={"path": request.url.path, "error": exc.code, "status_code": status_code},
        )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


app.include_router(catalog_router)
app.include_router(batches_router)
app.include_router(inventory_router)
app.include_router(purchases_router)
app.include_router(orders_router)
app.include_router(ledger_router)


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok"}
