import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from stockledger.api.deps import require_permission, resolve_business_id
from stockledger.db.database import get_db, run_in_transaction
from stockledger.models.enums import BatchStatus
from stockledger.models.user import User
from stockledger.schemas.inventory import BatchCreate, BatchOut
from stockledger.services import batch_registry

router = APIRouter(prefix="/batches", tags=["Batches"])


@router.post("", response_model=BatchOut, status_code=status.HTTP_201_CREATED)
def register_batch(
    payload: BatchCreate,
    current_user: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, payload.business_id)
    return run_in_transaction(
        db,
        lambda: batch_registry.register_batch(
            db,
            business_id=effective_business_id,
            batch_number=payload.batch_number,
            supplier_id=payload.supplier_id,
            received_date=payload.received_date,
            waybill_number=payload.waybill_number,
            notes=payload.notes,
        ),
    )


@router.get("", response_model=list[BatchOut])
def list_batches(
    business_id: uuid.UUID | None = Query(default=None),
    batch_status: BatchStatus | None = Query(default=None, alias="status"),
    supplier_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    return batch_registry.list_batches(
        db,
        resolve_business_id(current_user, business_id),
        status=batch_status,
        supplier_id=supplier_id,
    )


@router.post("/{batch_id}/close", response_model=BatchOut)
def close_batch(
    batch_id: uuid.UUID,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    return run_in_transaction(db, lambda: batch_registry.close_batch(db, batch_id, effective_business_id))
