"""Read-only lookups of catalog rows owned by other parts of the back office."""

import uuid

from sqlalchemy.orm import Session

from stockledger.core.errors import InvalidStateError, NotFoundError
from stockledger.models.catalog import PaymentMethod, Product, Supplier
from stockledger.models.user import User


def _scoped(row, business_id: uuid.UUID | None) -> bool:
    return business_id is None or row.business_id == business_id


def get_product(db: Session, product_id: uuid.UUID, business_id: uuid.UUID | None = None) -> Product:
    product = db.get(Product, product_id)
    if not product or not _scoped(product, business_id):
        raise NotFoundError("Product", product_id)
    return product


def get_active_product(db: Session, product_id: uuid.UUID, business_id: uuid.UUID | None = None) -> Product:
    product = get_product(db, product_id, business_id)
    if not product.is_active:
        raise InvalidStateError("Product is inactive", product_id=str(product_id))
    return product


def get_supplier(db: Session, supplier_id: uuid.UUID, business_id: uuid.UUID | None = None) -> Supplier:
    supplier = db.get(Supplier, supplier_id)
    if not supplier or not _scoped(supplier, business_id):
        raise NotFoundError("Supplier", supplier_id)
    return supplier


def get_payment_method(
    db: Session,
    payment_method_id: uuid.UUID,
    business_id: uuid.UUID | None = None,
) -> PaymentMethod:
    method = db.get(PaymentMethod, payment_method_id)
    if not method or not _scoped(method, business_id):
        raise NotFoundError("Payment method", payment_method_id)
    if not method.is_active:
        raise InvalidStateError("Payment method is inactive", payment_method_id=str(payment_method_id))
    return method


def get_user(db: Session, user_id: uuid.UUID) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user
