import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from stockledger.api.deps import require_permission, resolve_business_id
from stockledger.db.database import get_db, run_in_transaction
from stockledger.models.enums import OrderStatus
from stockledger.models.sales import Order
from stockledger.models.user import User
from stockledger.schemas.orders import (
    FulfillmentOut,
    FulfillRequest,
    LineAllocationOut,
    OrderCreate,
    OrderItemOut,
    OrderOut,
    ReversalOut,
    ReverseRequest,
)
from stockledger.services import order_fulfillment
from stockledger.services.order_fulfillment import FulfillmentLine, OrderLine

router = APIRouter(prefix="/orders", tags=["Orders"])


def _order_out(db: Session, order: Order) -> OrderOut:
    items = [OrderItemOut.model_validate(item) for item in order_fulfillment.order_items(db, order.id)]
    return OrderOut.model_validate(order).model_copy(update={"items": items})


@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    current_user: User = Depends(require_permission("inventory:sell")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, payload.business_id)

    def operation() -> Order:
        created = order_fulfillment.create_order(
            db,
            business_id=effective_business_id,
            customer_id=payload.customer_id,
            items=[
                OrderLine(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    discount=item.discount,
                )
                for item in payload.items
            ],
            payment_method=payload.payment_method,
            created_by_id=current_user.id,
            order_number=payload.order_number,
            order_date=payload.order_date,
            discount_total=payload.discount_total,
            tax_amount=payload.tax_amount,
        )
        if payload.fulfill_now:
            order_fulfillment.fulfill(
                db,
                order_id=created.id,
                business_id=effective_business_id,
                payment_method_id=payload.payment_method_id,
                processed_by_id=current_user.id,
            )
        return created

    order = run_in_transaction(db, operation)
    return _order_out(db, order)


@router.get("", response_model=list[OrderOut])
def list_orders(
    business_id: uuid.UUID | None = Query(default=None),
    order_status: OrderStatus | None = Query(default=None, alias="status"),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    return order_fulfillment.list_orders(db, resolve_business_id(current_user, business_id), status=order_status)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: uuid.UUID,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    order = order_fulfillment.get_order(db, order_id, resolve_business_id(current_user, business_id))
    return _order_out(db, order)


@router.post("/{order_id}/fulfill", response_model=FulfillmentOut)
def fulfill_order(
    order_id: uuid.UUID,
    payload: FulfillRequest | None = None,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:sell")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    payload = payload or FulfillRequest()

    def operation() -> FulfillmentOut:
        lines = None
        if payload.items is not None:
            lines = [FulfillmentLine(product_id=item.product_id, quantity=item.quantity) for item in payload.items]
        result = order_fulfillment.fulfill(
            db,
            order_id=order_id,
            items=lines,
            business_id=effective_business_id,
            payment_method_id=payload.payment_method_id,
            processed_by_id=current_user.id,
        )
        return FulfillmentOut(
            order_id=result.order_id,
            lines=[LineAllocationOut.model_validate(line) for line in result.lines],
            total_cogs=result.total_cogs,
            transaction_id=result.transaction.id if result.transaction else None,
        )

    return run_in_transaction(db, operation)


@router.post("/{order_id}/reverse", response_model=ReversalOut)
def reverse_order(
    order_id: uuid.UUID,
    payload: ReverseRequest | None = None,
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:manage")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    payload = payload or ReverseRequest()

    def operation() -> ReversalOut:
        result = order_fulfillment.reverse_fulfillment(
            db,
            order_id=order_id,
            reason=payload.reason,
            business_id=effective_business_id,
            payment_method_id=payload.payment_method_id,
            processed_by_id=current_user.id,
        )
        return ReversalOut(
            order_id=result.order_id,
            requested=result.requested,
            restored=result.restored,
            transaction_id=result.transaction.id if result.transaction else None,
        )

    return run_in_transaction(db, operation)
