import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockledger.api.deps import require_permission, require_system_owner, resolve_business_id
from stockledger.db.database import get_db
from stockledger.models.catalog import Business, Customer, PaymentMethod, Product, Supplier
from stockledger.models.user import User
from stockledger.schemas.catalog import (
    BusinessCreate,
    BusinessOut,
    CustomerCreate,
    CustomerOut,
    PaymentMethodCreate,
    PaymentMethodOut,
    ProductCreate,
    ProductOut,
    SupplierCreate,
    SupplierOut,
)
from stockledger.services.lookups import get_supplier

router = APIRouter(prefix="/catalog", tags=["Catalog"])


def _commit_or_conflict(db: Session, row, detail: str):
    db.add(row)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail) from exc
    db.refresh(row)
    return row


@router.post("/businesses", response_model=BusinessOut, status_code=status.HTTP_201_CREATED)
def create_business(
    payload: BusinessCreate,
    _: User = Depends(require_system_owner),
    db: Session = Depends(get_db),
):
    business = Business(code=payload.code.strip().upper(), name=payload.name.strip())
    return _commit_or_conflict(db, business, "Business code already exists")


@router.get("/businesses", response_model=list[BusinessOut])
def list_businesses(
    _: User = Depends(require_system_owner),
    db: Session = Depends(get_db),
):
    return list(db.scalars(select(Business).order_by(Business.name.asc())).all())


@router.post("/suppliers", response_model=SupplierOut, status_code=status.HTTP_201_CREATED)
def create_supplier(
    payload: SupplierCreate,
    current_user: User = Depends(require_permission("catalog:manage")),
    db: Session = Depends(get_db),
):
    supplier = Supplier(
        business_id=resolve_business_id(current_user, payload.business_id),
        name=payload.name.strip(),
        contact=payload.contact,
    )
    return _commit_or_conflict(db, supplier, "Supplier name already exists for this business")


@router.get("/suppliers", response_model=list[SupplierOut])
def list_suppliers(
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    return list(
        db.scalars(
            select(Supplier).where(Supplier.business_id == effective_business_id).order_by(Supplier.name.asc())
        ).all()
    )


@router.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    current_user: User = Depends(require_permission("catalog:manage")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, payload.business_id)
    supplier = get_supplier(db, payload.supplier_id, effective_business_id)
    product = Product(
        business_id=effective_business_id,
        product_code=payload.product_code.strip().upper(),
        name=payload.name.strip(),
        description=payload.description,
        unit_of_measure=payload.unit_of_measure,
        reorder_threshold=payload.reorder_threshold,
        supplier_id=supplier.id,
        default_cost_price=payload.default_cost_price,
        default_selling_price=payload.default_selling_price,
    )
    return _commit_or_conflict(db, product, "Product code already exists")


@router.get("/products", response_model=list[ProductOut])
def list_products(
    business_id: uuid.UUID | None = Query(default=None),
    include_inactive: bool = Query(default=False),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    query = select(Product).where(Product.business_id == resolve_business_id(current_user, business_id))
    if not include_inactive:
        query = query.where(Product.is_active.is_(True))
    return list(db.scalars(query.order_by(Product.name.asc())).all())


@router.post("/payment-methods", response_model=PaymentMethodOut, status_code=status.HTTP_201_CREATED)
def create_payment_method(
    payload: PaymentMethodCreate,
    current_user: User = Depends(require_permission("catalog:manage")),
    db: Session = Depends(get_db),
):
    method = PaymentMethod(
        business_id=resolve_business_id(current_user, payload.business_id),
        name=payload.name.strip(),
    )
    return _commit_or_conflict(db, method, "Payment method could not be created")


@router.get("/payment-methods", response_model=list[PaymentMethodOut])
def list_payment_methods(
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    return list(
        db.scalars(
            select(PaymentMethod)
            .where(PaymentMethod.business_id == effective_business_id)
            .order_by(PaymentMethod.name.asc())
        ).all()
    )


@router.post("/customers", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerCreate,
    current_user: User = Depends(require_permission("inventory:sell")),
    db: Session = Depends(get_db),
):
    customer = Customer(
        business_id=resolve_business_id(current_user, payload.business_id),
        customer_name=payload.customer_name.strip(),
        phone=payload.phone,
        email=payload.email,
    )
    return _commit_or_conflict(db, customer, "Customer could not be created")


@router.get("/customers", response_model=list[CustomerOut])
def list_customers(
    business_id: uuid.UUID | None = Query(default=None),
    current_user: User = Depends(require_permission("inventory:view")),
    db: Session = Depends(get_db),
):
    effective_business_id = resolve_business_id(current_user, business_id)
    return list(
        db.scalars(
            select(Customer)
            .where(Customer.business_id == effective_business_id)
            .order_by(Customer.customer_name.asc())
        ).all()
    )
