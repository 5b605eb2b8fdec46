"""stock ledger schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

REFERENCE_TYPES = ("order", "purchase", "adjustment", "expense")

ENUMS = {
    "user_role": ("system_owner", "business_owner", "employee"),
    "batch_status": ("open", "closed"),
    "movement_type": ("in", "out", "adjustment"),
    "adjustment_direction": ("increase", "decrease"),
    "movement_reference_type": REFERENCE_TYPES,
    "purchase_status": ("pending", "received", "partial", "cancelled"),
    "order_status": ("pending", "paid", "shipped", "delivered", "cancelled"),
    "order_payment_method": ("cash", "card", "online"),
    "order_payment_status": ("unpaid", "paid", "partially_paid"),
    "transaction_type": ("sale", "purchase", "expense", "refund", "adjustment", "opening_balance"),
    "transaction_status": ("pending", "completed", "failed", "cancelled"),
    "transaction_reference_type": REFERENCE_TYPES,
    "expense_status": ("pending", "paid", "cancelled"),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*ENUMS[name], name=name, create_type=False)


def _index(table: str, column: str, unique: bool = False) -> None:
    op.create_index(op.f(f"ix_{table}_{column}"), table, [column], unique=unique)


def _business_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["businessId"], ["businesses.id"], ondelete="CASCADE", onupdate="CASCADE")


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        sa.Enum(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "businesses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("isActive", sa.Boolean(), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("businesses", "code", unique=True)
    _index("businesses", "name")

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("isGlobalAccess", sa.Boolean(), nullable=False),
        sa.Column("role", _enum("user_role"), nullable=False),
        sa.Column("isActive", sa.Boolean(), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("users", "email", unique=True)
    _index("users", "username", unique=True)
    _index("users", "businessId")
    _index("users", "role")

    op.create_table(
        "suppliers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("contact", sa.String(length=255), nullable=True),
        sa.Column("isActive", sa.Boolean(), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("businessId", "name", name="uq_suppliers_business_name"),
    )
    _index("suppliers", "businessId")

    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("productCode", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("unitOfMeasure", sa.String(length=24), nullable=False),
        sa.Column("reorderThreshold", sa.Integer(), nullable=False),
        sa.Column("supplierId", sa.Uuid(), nullable=False),
        sa.Column("defaultCostPrice", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("defaultSellingPrice", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("isActive", sa.Boolean(), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.ForeignKeyConstraint(["supplierId"], ["suppliers.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("productCode"),
    )
    _index("products", "businessId")
    _index("products", "name")
    _index("products", "supplierId")

    op.create_table(
        "paymentMethods",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("isActive", sa.Boolean(), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("paymentMethods", "businessId")

    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("customerName", sa.String(length=160), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("isActive", sa.Boolean(), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("customers", "businessId")

    op.create_table(
        "batches",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("batchNumber", sa.String(length=100), nullable=False),
        sa.Column("waybillNumber", sa.String(length=100), nullable=True),
        sa.Column("supplierId", sa.Uuid(), nullable=False),
        sa.Column("receivedDate", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", _enum("batch_status"), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        sa.Column("updatedAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.ForeignKeyConstraint(["supplierId"], ["suppliers.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("batchNumber"),
    )
    _index("batches", "businessId")
    _index("batches", "supplierId")

    op.create_table(
        "purchases",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("purchaseNumber", sa.String(length=64), nullable=False),
        sa.Column("supplierId", sa.Uuid(), nullable=False),
        sa.Column("batchId", sa.Uuid(), nullable=True),
        sa.Column("status", _enum("purchase_status"), nullable=False),
        sa.Column("totalAmount", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("createdById", sa.Uuid(), nullable=True),
        sa.Column("purchaseDate", sa.Date(), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        sa.Column("updatedAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.ForeignKeyConstraint(["supplierId"], ["suppliers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["batchId"], ["batches.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["createdById"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("purchaseNumber"),
    )
    _index("purchases", "businessId")
    _index("purchases", "supplierId")
    _index("purchases", "batchId")
    _index("purchases", "status")

    op.create_table(
        "purchaseItems",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("purchaseId", sa.Uuid(), nullable=False),
        sa.Column("productId", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unitCost", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("totalCost", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("sellingPrice", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("expiryDate", sa.Date(), nullable=True),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["purchaseId"], ["purchases.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["productId"], ["products.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("purchaseItems", "purchaseId")
    _index("purchaseItems", "productId")

    op.create_table(
        "inventoryEntries",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("productId", sa.Uuid(), nullable=False),
        sa.Column("batchId", sa.Uuid(), nullable=False),
        sa.Column("purchaseItemId", sa.Uuid(), nullable=True),
        sa.Column("costPrice", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("sellingPrice", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("quantityReceived", sa.Integer(), nullable=False),
        sa.Column("currentQuantity", sa.Integer(), nullable=False),
        sa.Column("expiryDate", sa.Date(), nullable=True),
        sa.Column("warehouseLocation", sa.String(length=100), nullable=True),
        sa.Column("reference", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("idempotencyKey", sa.String(length=200), nullable=True),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        sa.Column("updatedAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.ForeignKeyConstraint(["productId"], ["products.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["batchId"], ["batches.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["purchaseItemId"], ["purchaseItems.id"], ondelete="RESTRICT"),
        sa.CheckConstraint(
            '"currentQuantity" >= 0 AND "currentQuantity" <= "quantityReceived"',
            name="ck_inventory_entries_current_quantity_range",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotencyKey"),
    )
    _index("inventoryEntries", "businessId")
    _index("inventoryEntries", "productId")
    _index("inventoryEntries", "batchId")
    _index("inventoryEntries", "purchaseItemId")
    op.create_index(
        "ix_inventoryEntries_product_fifo",
        "inventoryEntries",
        ["productId", "createdAt", "id"],
        unique=False,
    )

    op.create_table(
        "inventoryMovements",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("inventoryEntryId", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("movementType", _enum("movement_type"), nullable=False),
        sa.Column("adjustmentDirection", _enum("adjustment_direction"), nullable=True),
        sa.Column("referenceId", sa.Uuid(), nullable=True),
        sa.Column("referenceType", _enum("movement_reference_type"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("createdById", sa.Uuid(), nullable=True),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.ForeignKeyConstraint(["inventoryEntryId"], ["inventoryEntries.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["createdById"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint('"quantity" > 0', name="ck_inventory_movements_quantity_positive"),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("inventoryMovements", "businessId")
    _index("inventoryMovements", "inventoryEntryId")
    _index("inventoryMovements", "referenceId")
    _index("inventoryMovements", "createdAt")

    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("orderNumber", sa.String(length=64), nullable=False),
        sa.Column("customerId", sa.Uuid(), nullable=False),
        sa.Column("orderDate", sa.Date(), nullable=False),
        sa.Column("status", _enum("order_status"), nullable=False),
        sa.Column("paymentMethod", _enum("order_payment_method"), nullable=False),
        sa.Column("paymentStatus", _enum("order_payment_status"), nullable=False),
        sa.Column("subtotal", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("discountTotal", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("taxAmount", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("totalAmount", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("createdById", sa.Uuid(), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        sa.Column("updatedAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.ForeignKeyConstraint(["customerId"], ["customers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["createdById"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("orderNumber"),
    )
    _index("orders", "businessId")
    _index("orders", "customerId")
    _index("orders", "status")

    op.create_table(
        "orderItems",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("orderId", sa.Uuid(), nullable=False),
        sa.Column("productId", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unitPrice", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("discount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("totalAmount", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["orderId"], ["orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["productId"], ["products.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("orderItems", "orderId")
    _index("orderItems", "productId")

    op.create_table(
        "transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("transactionType", _enum("transaction_type"), nullable=False),
        sa.Column("amount", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("paymentMethodId", sa.Uuid(), nullable=True),
        sa.Column("status", _enum("transaction_status"), nullable=False),
        sa.Column("referenceId", sa.Uuid(), nullable=True),
        sa.Column("referenceType", _enum("transaction_reference_type"), nullable=True),
        sa.Column("processedById", sa.Uuid(), nullable=True),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("idempotencyKey", sa.String(length=200), nullable=True),
        sa.Column("voidReason", sa.String(length=255), nullable=True),
        sa.Column("voidedAt", sa.DateTime(), nullable=True),
        sa.Column("paymentDate", sa.DateTime(), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.ForeignKeyConstraint(["paymentMethodId"], ["paymentMethods.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["processedById"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotencyKey"),
    )
    _index("transactions", "businessId")
    _index("transactions", "transactionType")
    _index("transactions", "paymentMethodId")
    _index("transactions", "status")
    _index("transactions", "referenceId")
    _index("transactions", "processedById")
    _index("transactions", "paymentDate")

    op.create_table(
        "expenses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("businessId", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=False),
        sa.Column("amount", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("status", _enum("expense_status"), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("createdById", sa.Uuid(), nullable=True),
        sa.Column("incurredAt", sa.DateTime(), nullable=False),
        sa.Column("createdAt", sa.DateTime(), nullable=False),
        _business_fk(),
        sa.ForeignKeyConstraint(["createdById"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("expenses", "businessId")
    _index("expenses", "incurredAt")


def downgrade() -> None:
    for table in (
        "expenses",
        "transactions",
        "orderItems",
        "orders",
        "inventoryMovements",
        "inventoryEntries",
        "purchaseItems",
        "purchases",
        "batches",
        "customers",
        "paymentMethods",
        "products",
        "suppliers",
        "users",
        "businesses",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        sa.Enum(name=name).drop(bind, checkfirst=True)
