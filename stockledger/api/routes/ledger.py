import uuid
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from stockledger.api.deps import idempotency_key, require_permission, resolve_business_id
from stockledger.core.errors import ValidationError
from stockledger.db.database import get_db, run_in_transaction
from stockledger.models.enums import ReferenceType, TransactionStatus, TransactionType
from stockledger.models.user import User
from stockledger.schemas.ledger import (
    BalanceOut,
    ExpenseCreate,
    ExpenseOut,
    TransactionCreate,
    TransactionOut,
    VoidRequest,
)
from stockledger.services import expenses, transaction_ledger
from stockledger.services.references import Reference

router = APIRouter(tags=["Ledger"])


def _parse_as_of(raw: str | None) -> datetime | date:
    if raw is None:
        return datetime.utcnow()
    raw = raw.strip()
    try:
        if len(raw) == 10:
            return date.fromisoformat(raw)
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid as_of value {raw!r}; use YYYY-MM-DD or an ISO datetime") from exc


def _reference(reference_type: ReferenceType | None, reference_id: uuid.UUID | None) -> Reference | None:
    if reference_type is None and reference_id is None:
        return None
    if reference_type is None or reference_id is None:
        raise ValidationError("reference_type and reference_id must be given together")
    return Reference.parse(reference_type, reference_id)


@router.post("/transactions", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
def post_transaction(
    payload: TransactionCreate,
    key: str | None = Depends(idempotency_key),
    current_user: User = Depends(require_permission("ledger:post")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, payload.business_id)
    reference = _reference(payload.reference_type, payload.reference_id)
    return run_in_transaction(
        db,
        lambda: transaction_ledger.post(
            db,
            business_id=effective_business_id,
            transaction_type=payload.transaction_type,
            amount=payload.amount,
            payment_method_id=payload.payment_method_id,
            reference=reference,
            processed_by_id=current_user.id,
            description=payload.description,
            payment_date=payload.payment_date,
            status=TransactionStatus.PENDING if payload.pending else TransactionStatus.COMPLETED,
            idempotency_key=key,
        ),
    )


@router.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    business_id: uuid.UUID | None = Query(default=None),
    transaction_type: TransactionType | None = Query(default=None),
    transaction_status: TransactionStatus | None = Query(default=None, alias="status"),
    reference_type: ReferenceType | None = Query(default=None),
    reference_id: uuid.UUID | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    return transaction_ledger.list_transactions(
        db,
        resolve_business_id(current_user, business_id),
        transaction_type=transaction_type,
        status=transaction_status,
        reference=_reference(reference_type, reference_id),
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/transactions/balance", response_model=BalanceOut)
def balance(
    business_id: uuid.UUID | None = Query(default=None),
    as_of: str | None = Query(default=None, description="YYYY-MM-DD covers the whole day"),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    cutoff = _parse_as_of(as_of)
    return BalanceOut(
        business_id=effective_business_id,
        as_of=cutoff.isoformat(),
        balance=transaction_ledger.balance_as_of(db, effective_business_id, cutoff),
    )


@router.post("/transactions/{transaction_id}/void", response_model=TransactionOut)
def void_transaction(
    transaction_id: uuid.UUID,
    payload: VoidRequest,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("ledger:void")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    return run_in_transaction(
        db,
        lambda: transaction_ledger.void(
            db,
            transaction_id=transaction_id,
            reason=payload.reason,
            business_id=effective_business_id,
        ),
    )


@router.post("/expenses", response_model=ExpenseOut, status_code=status.HTTP_201_CREATED)
def record_expense(
    payload: ExpenseCreate,
    current_user: User = Depends(require_permission("ledger:post")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, payload.business_id)

    def operation() -> ExpenseOut:
        result = expenses.record_expense(
            db,
            business_id=effective_business_id,
            name=payload.name,
            category=payload.category,
            amount=payload.amount,
            note=payload.note,
            pending=payload.pending,
            payment_method_id=payload.payment_method_id,
            created_by_id=current_user.id,
            incurred_at=payload.incurred_at,
        )
        return ExpenseOut.model_validate(result.expense).model_copy(update={"transaction_id": result.transaction.id})

    return run_in_transaction(db, operation)


@router.get("/expenses", response_model=list[ExpenseOut])
def list_expenses(
    business_id: uuid.UUID | None = Query(default=None),
    category: str | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    return expenses.list_expenses(db, resolve_business_id(current_user, business_id), category=category)
