"""Signed cash ledger.

`amount` carries direction in its sign: positive is money in, negative is
money out. The allowed sign per transaction type is enforced here, not by the
callers.
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockledger.core.errors import InvalidStateError, NotFoundError, ValidationError
from stockledger.models.enums import TransactionStatus, TransactionType
from stockledger.models.ledger import Transaction
from stockledger.services.lookups import get_payment_method, get_user
from stockledger.services.references import Reference

logger = logging.getLogger(__name__)

Q2 = Decimal("0.01")

POSITIVE = 1
NEGATIVE = -1
EITHER = 0

SIGN_RULES: dict[TransactionType, int] = {
    TransactionType.SALE: POSITIVE,
    TransactionType.PURCHASE: NEGATIVE,
    TransactionType.EXPENSE: NEGATIVE,
    TransactionType.REFUND: NEGATIVE,
    TransactionType.ADJUSTMENT: EITHER,
    TransactionType.OPENING_BALANCE: EITHER,
}


def validate_sign(transaction_type: TransactionType, amount: Decimal) -> None:
    rule = SIGN_RULES[transaction_type]
    if amount == 0:
        raise ValidationError("Transaction amount must be non-zero", transaction_type=transaction_type.value)
    if rule == POSITIVE and amount < 0:
        raise ValidationError(
            f"A {transaction_type.value} transaction must have a positive amount",
            transaction_type=transaction_type.value,
            amount=str(amount),
        )
    if rule == NEGATIVE and amount > 0:
        raise ValidationError(
            f"A {transaction_type.value} transaction must have a negative amount",
            transaction_type=transaction_type.value,
            amount=str(amount),
        )


def post(
    db: Session,
    *,
    business_id: uuid.UUID,
    transaction_type: TransactionType,
    amount: Decimal,
    payment_method_id: uuid.UUID | None = None,
    reference: Reference | None = None,
    processed_by_id: uuid.UUID | None = None,
    description: str | None = None,
    payment_date: datetime | None = None,
    status: TransactionStatus = TransactionStatus.COMPLETED,
    idempotency_key: str | None = None,
) -> Transaction:
    if idempotency_key:
        existing = db.scalar(select(Transaction).where(Transaction.idempotency_key == idempotency_key))
        if existing:
            logger.info(
                "post replayed, returning existing transaction",
                extra={"transaction_id": str(existing.id), "idempotency_key": idempotency_key},
            )
            return existing

    transaction_type = TransactionType(transaction_type)
    amount = Decimal(amount).quantize(Q2)
    validate_sign(transaction_type, amount)
    if status not in (TransactionStatus.PENDING, TransactionStatus.COMPLETED):
        raise ValidationError("New transactions must be pending or completed", status=status.value)
    if payment_method_id is not None:
        get_payment_method(db, payment_method_id, business_id)
    if processed_by_id is not None:
        get_user(db, processed_by_id)

    transaction = Transaction(
        business_id=business_id,
        transaction_type=transaction_type,
        amount=amount,
        payment_method_id=payment_method_id,
        status=status,
        reference_id=reference.id if reference else None,
        reference_type=reference.kind if reference else None,
        processed_by_id=processed_by_id,
        description=description,
        idempotency_key=idempotency_key,
        payment_date=payment_date or datetime.utcnow(),
    )
    db.add(transaction)
    db.flush()
    logger.info(
        "transaction posted",
        extra={
            "transaction_id": str(transaction.id),
            "transaction_type": transaction_type.value,
            "amount": str(amount),
        },
    )
    return transaction


def _lock_transaction(db: Session, transaction_id: uuid.UUID, business_id: uuid.UUID | None) -> Transaction:
    transaction = db.scalar(select(Transaction).where(Transaction.id == transaction_id).with_for_update())
    if not transaction or (business_id is not None and transaction.business_id != business_id):
        raise NotFoundError("Transaction", transaction_id)
    return transaction


def void(
    db: Session,
    *,
    transaction_id: uuid.UUID,
    reason: str,
    business_id: uuid.UUID | None = None,
) -> Transaction:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required to void a transaction")
    transaction = _lock_transaction(db, transaction_id, business_id)
    if transaction.status not in (TransactionStatus.PENDING, TransactionStatus.COMPLETED):
        raise InvalidStateError(
            f"Cannot void a {transaction.status.value} transaction",
            transaction_id=str(transaction.id),
        )
    transaction.status = TransactionStatus.CANCELLED
    transaction.void_reason = reason
    transaction.voided_at = datetime.utcnow()
    db.flush()
    logger.info("transaction voided", extra={"transaction_id": str(transaction.id)})
    return transaction


def complete(db: Session, *, transaction_id: uuid.UUID, business_id: uuid.UUID | None = None) -> Transaction:
    transaction = _lock_transaction(db, transaction_id, business_id)
    if transaction.status != TransactionStatus.PENDING:
        raise InvalidStateError(
            f"Only pending transactions can be completed (status is {transaction.status.value})",
            transaction_id=str(transaction.id),
        )
    transaction.status = TransactionStatus.COMPLETED
    db.flush()
    return transaction


def _cutoff(as_of: datetime | date) -> tuple[datetime, bool]:
    # a bare date covers the whole day
    if isinstance(as_of, datetime):
        return as_of, True
    return datetime.combine(as_of + timedelta(days=1), time.min), False


def balance_as_of(db: Session, business_id: uuid.UUID, as_of: datetime | date) -> Decimal:
    cutoff, inclusive = _cutoff(as_of)
    date_clause = Transaction.payment_date <= cutoff if inclusive else Transaction.payment_date < cutoff
    db.flush()
    total = db.scalar(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.business_id == business_id,
            Transaction.status == TransactionStatus.COMPLETED,
            date_clause,
        )
    )
    return Decimal(total or 0).quantize(Q2)


def find_by_reference(
    db: Session,
    reference: Reference,
    *,
    transaction_type: TransactionType | None = None,
    include_cancelled: bool = False,
) -> list[Transaction]:
    query = select(Transaction).where(
        Transaction.reference_type == reference.kind,
        Transaction.reference_id == reference.id,
    )
    if transaction_type is not None:
        query = query.where(Transaction.transaction_type == transaction_type)
    if not include_cancelled:
        query = query.where(Transaction.status != TransactionStatus.CANCELLED)
    return list(db.scalars(query.order_by(Transaction.created_at.asc())).all())


def list_transactions(
    db: Session,
    business_id: uuid.UUID,
    *,
    transaction_type: TransactionType | None = None,
    status: TransactionStatus | None = None,
    reference: Reference | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[Transaction]:
    query = select(Transaction).where(Transaction.business_id == business_id).order_by(Transaction.payment_date.desc())
    if transaction_type is not None:
        query = query.where(Transaction.transaction_type == transaction_type)
    if status is not None:
        query = query.where(Transaction.status == status)
    if reference is not None:
        query = query.where(
            Transaction.reference_type == reference.kind,
            Transaction.reference_id == reference.id,
        )
    if date_from is not None:
        query = query.where(Transaction.payment_date >= date_from)
    if date_to is not None:
        query = query.where(Transaction.payment_date <= date_to)
    return list(db.scalars(query).all())
