import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.core.errors import ValidationError
from stockledger.models.enums import ExpenseStatus, TransactionStatus, TransactionType
from stockledger.models.ledger import Expense, Transaction
from stockledger.services import transaction_ledger
from stockledger.services.references import Reference

logger = logging.getLogger(__name__)

Q2 = Decimal("0.01")


@dataclass
class ExpenseResult:
    expense: Expense
    transaction: Transaction


def record_expense(
    db: Session,
    *,
    business_id: uuid.UUID,
    name: str,
    category: str,
    amount: Decimal,
    note: str | None = None,
    pending: bool = False,
    payment_method_id: uuid.UUID | None = None,
    created_by_id: uuid.UUID | None = None,
    incurred_at: datetime | None = None,
) -> ExpenseResult:
    name = (name or "").strip()
    category = (category or "").strip()
    if not name or not category:
        raise ValidationError("Expense name and category are required")
    amount = Decimal(amount).quantize(Q2)
    if amount <= 0:
        raise ValidationError("Expense amount must be positive", amount=str(amount))

    incurred = incurred_at or datetime.utcnow()
    expense = Expense(
        business_id=business_id,
        name=name,
        category=category,
        amount=amount,
        status=ExpenseStatus.PENDING if pending else ExpenseStatus.PAID,
        note=note,
        created_by_id=created_by_id,
        incurred_at=incurred,
    )
    db.add(expense)
    db.flush()

    transaction = transaction_ledger.post(
        db,
        business_id=business_id,
        transaction_type=TransactionType.EXPENSE,
        amount=-amount,
        payment_method_id=payment_method_id,
        reference=Reference.expense(expense.id),
        processed_by_id=created_by_id,
        description=f"{category}: {name}",
        payment_date=incurred,
        status=TransactionStatus.PENDING if pending else TransactionStatus.COMPLETED,
    )
    logger.info("expense recorded", extra={"expense_id": str(expense.id), "amount": str(amount)})
    return ExpenseResult(expense=expense, transaction=transaction)


def list_expenses(db: Session, business_id: uuid.UUID, *, category: str | None = None) -> list[Expense]:
    query = select(Expense).where(Expense.business_id == business_id).order_by(Expense.incurred_at.desc())
    if category:
        query = query.where(Expense.category == category.strip())
    return list(db.scalars(query).all())
