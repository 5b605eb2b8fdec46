"""Domain errors raised by the ledger services.

Every error carries a human readable message plus structured context
(entity ids, requested vs. available quantities) that the API layer echoes
back to the caller.
"""

from typing import Any


class LedgerError(Exception):
    code = "ledger_error"
    retryable = False

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = {"detail": self.message, "error": self.code, "retryable": self.retryable}
        payload.update({key: value for key, value in self.context.items() if value is not None})
        return payload


class ValidationError(LedgerError):
    """Malformed or out-of-range input."""

    code = "validation_error"


class NotFoundError(LedgerError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found", entity=entity, entity_id=str(entity_id))


class InsufficientStockError(LedgerError):
    code = "insufficient_stock"

    def __init__(self, product_id: Any, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}",
            product_id=str(product_id),
            requested=requested,
            available=available,
        )


class InvalidStateError(LedgerError):
    """Operation attempted against an entity in a terminal or incompatible state."""

    code = "invalid_state"


class ConcurrencyConflictError(LedgerError):
    """Lock timeout or serialization failure; the whole operation may be retried."""

    code = "concurrency_conflict"
    retryable = True
