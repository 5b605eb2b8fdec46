import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from stockledger.api.deps import idempotency_key, require_permission, resolve_business_id
from stockledger.db.database import get_db, run_in_transaction
from stockledger.models.enums import ReferenceType
from stockledger.models.user import User
from stockledger.schemas.inventory import (
    AllocationOut,
    AvailableOut,
    EntryAdjustRequest,
    InventoryEntryOut,
    MovementOut,
    ReceiveStockRequest,
    StockAdjustmentOut,
    StockAdjustRequest,
    StockSummaryOut,
    ValuationOut,
)
from stockledger.services import inventory_ledger, stock_adjustment, valuation
from stockledger.services.references import Reference

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.post("/receive", response_model=InventoryEntryOut, status_code=status.HTTP_201_CREATED)
def receive_stock(
    payload: ReceiveStockRequest,
    business_id: uuid.UUID | None = Query(default=None),
    key: str | None = Depends(idempotency_key),
    current_user: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    return run_in_transaction(
        db,
        lambda: inventory_ledger.receive(
            db,
            product_id=payload.product_id,
            batch_id=payload.batch_id,
            cost_price=payload.cost_price,
            selling_price=payload.selling_price,
            quantity=payload.quantity,
            expiry_date=payload.expiry_date,
            business_id=effective_business_id,
            idempotency_key=key,
            warehouse_location=payload.warehouse_location,
            notes=payload.notes,
            created_by_id=current_user.id,
        ),
    )


@router.post("/adjust", response_model=StockAdjustmentOut, status_code=status.HTTP_201_CREATED)
def adjust_stock(
    payload: StockAdjustRequest,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)

    def operation() -> StockAdjustmentOut:
        result = stock_adjustment.adjust(
            db,
            product_id=payload.product_id,
            direction=payload.direction,
            quantity=payload.quantity,
            reason=payload.reason,
            notes=payload.notes,
            business_id=effective_business_id,
            unit_cost=payload.unit_cost,
            cost_policy=payload.cost_policy,
            post_transaction=payload.post_transaction,
            payment_method_id=payload.payment_method_id,
            created_by_id=current_user.id,
        )
        return StockAdjustmentOut(
            adjustment_id=result.adjustment_id,
            product_id=result.product_id,
            direction=result.direction,
            quantity=result.quantity,
            value=result.value,
            entry_ids=result.entry_ids,
            allocations=[AllocationOut.model_validate(allocation) for allocation in result.allocations],
            transaction_id=result.transaction.id if result.transaction else None,
        )

    return run_in_transaction(db, operation)


@router.post("/entries/{entry_id}/adjust", response_model=InventoryEntryOut)
def adjust_entry(
    entry_id: uuid.UUID,
    payload: EntryAdjustRequest,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    return run_in_transaction(
        db,
        lambda: inventory_ledger.adjust(
            db,
            entry_id=entry_id,
            delta=payload.delta,
            reason=payload.reason,
            business_id=effective_business_id,
            reference=Reference.adjustment(uuid.uuid4()),
            created_by_id=current_user.id,
        ),
    )


@router.get("/entries", response_model=list[InventoryEntryOut])
def list_entries(
    business_id: uuid.UUID | None = Query(default=None),
    product_id: uuid.UUID | None = Query(default=None),
    batch_id: uuid.UUID | None = Query(default=None),
    include_exhausted: bool = Query(default=True),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    return inventory_ledger.list_entries(
        db,
        resolve_business_id(current_user, business_id),
        product_id=product_id,
        batch_id=batch_id,
        include_exhausted=include_exhausted,
    )


@router.get("/movements", response_model=list[MovementOut])
def list_movements(
    business_id: uuid.UUID | None = Query(default=None),
    entry_id: uuid.UUID | None = Query(default=None),
    product_id: uuid.UUID | None = Query(default=None),
    reference_type: ReferenceType | None = Query(default=None),
    reference_id: uuid.UUID | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    reference = Reference.parse(reference_type, reference_id) if reference_type and reference_id else None
    return inventory_ledger.list_movements(
        db,
        resolve_business_id(current_user, business_id),
        entry_id=entry_id,
        product_id=product_id,
        reference=reference,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/available/{product_id}", response_model=AvailableOut)
def available_quantity(
    product_id: uuid.UUID,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    return AvailableOut(
        product_id=product_id,
        available=inventory_ledger.available_quantity(db, product_id, effective_business_id),
    )


@router.get("/valuation/{product_id}", response_model=ValuationOut)
def product_valuation(
    product_id: uuid.UUID,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    return valuation.product_valuation(db, product_id, resolve_business_id(current_user, business_id))


@router.get("/summary", response_model=list[StockSummaryOut])
def stock_summary(
    business_id: uuid.UUID | None = Query(default=None),
    low_only: bool = Query(default=False),
    include_inactive: bool = Query(default=False),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    return valuation.stock_summary(
        db,
        resolve_business_id(current_user, business_id),
        low_only=low_only,
        include_inactive=include_inactive,
    )


@router.get("/summary/{product_id}", response_model=StockSummaryOut)
def product_stock_summary(
    product_id: uuid.UUID,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    return valuation.product_stock_summary(db, product_id, resolve_business_id(current_user, business_id))
