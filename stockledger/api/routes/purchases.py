import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from stockledger.api.deps import idempotency_key, require_permission, resolve_business_id
from stockledger.db.database import get_db, run_in_transaction
from stockledger.models.enums import PurchaseStatus
from stockledger.models.procurement import Purchase
from stockledger.models.user import User
from stockledger.schemas.purchases import PurchaseCreate, PurchaseItemOut, PurchaseOut, PurchaseReceiveRequest
from stockledger.services import purchase_receiving
from stockledger.services.purchase_receiving import PurchaseLine, ReceivedLine

router = APIRouter(prefix="/purchases", tags=["Purchases"])


def _purchase_out(db: Session, purchase: Purchase) -> PurchaseOut:
    received = purchase_receiving.received_quantities(db, purchase.id)
    items = [
        PurchaseItemOut.model_validate(item).model_copy(update={"quantity_received": received.get(item.id, 0)})
        for item in purchase_receiving.purchase_items(db, purchase.id)
    ]
    return PurchaseOut.model_validate(purchase).model_copy(update={"items": items})


@router.post("", response_model=PurchaseOut, status_code=status.HTTP_201_CREATED)
def create_purchase(
    payload: PurchaseCreate,
    current_user: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, payload.business_id)
    purchase = run_in_transaction(
        db,
        lambda: purchase_receiving.create_purchase(
            db,
            business_id=effective_business_id,
            supplier_id=payload.supplier_id,
            items=[
                PurchaseLine(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_cost=item.unit_cost,
                    selling_price=item.selling_price,
                    expiry_date=item.expiry_date,
                )
                for item in payload.items
            ],
            purchase_number=payload.purchase_number,
            batch_id=payload.batch_id,
            purchase_date=payload.purchase_date,
            notes=payload.notes,
            created_by_id=current_user.id,
        ),
    )
    return _purchase_out(db, purchase)


@router.get("", response_model=list[PurchaseOut])
def list_purchases(
    business_id: uuid.UUID | None = Query(default=None),
    purchase_status: PurchaseStatus | None = Query(default=None, alias="status"),
    supplier_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    return purchase_receiving.list_purchases(
        db,
        resolve_business_id(current_user, business_id),
        status=purchase_status,
        supplier_id=supplier_id,
    )


@router.get("/{purchase_id}", response_model=PurchaseOut)
def get_purchase(
    purchase_id: uuid.UUID,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    purchase = purchase_receiving.get_purchase(db, purchase_id, resolve_business_id(current_user, business_id))
    return _purchase_out(db, purchase)


@router.post("/{purchase_id}/receive", response_model=PurchaseOut)
def receive_purchase(
    purchase_id: uuid.UUID,
    payload: PurchaseReceiveRequest,
    business_id: uuid.UUID | None = Query(default=None),
    key: str | None = Depends(idempotency_key),
    current_user: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    purchase = run_in_transaction(
        db,
        lambda: purchase_receiving.receive(
            db,
            purchase_id=purchase_id,
            lines=[
                ReceivedLine(
                    purchase_item_id=line.purchase_item_id,
                    quantity_received=line.quantity_received,
                    expiry_date=line.expiry_date,
                    warehouse_location=line.warehouse_location,
                )
                for line in payload.lines
            ],
            business_id=effective_business_id,
            batch_id=payload.batch_id,
            overage_tolerance=payload.overage_tolerance,
            payment_method_id=payload.payment_method_id,
            processed_by_id=current_user.id,
            idempotency_key=key,
        ),
    )
    return _purchase_out(db, purchase)


@router.post("/{purchase_id}/cancel", response_model=PurchaseOut)
def cancel_purchase(
    purchase_id: uuid.UUID,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    purchase = run_in_transaction(
        db,
        lambda: purchase_receiving.cancel_purchase(db, purchase_id=purchase_id, business_id=effective_business_id),
    )
    return _purchase_out(db, purchase)
