from enum import Enum

from sqlalchemy import Enum as SQLEnum


def values_enum(enum_cls: type[Enum], name: str) -> SQLEnum:
    # store the lowercase values, not the member names
    return SQLEnum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])


class UserRole(str, Enum):
    SYSTEM_OWNER = "system_owner"
    BUSINESS_OWNER = "business_owner"
    EMPLOYEE = "employee"


class BatchStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"


class AdjustmentDirection(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    RECEIVED = "received"
    PARTIAL = "partial"
    CANCELLED = "cancelled"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderPaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    ONLINE = "online"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"


class TransactionType(str, Enum):
    SALE = "sale"
    PURCHASE = "purchase"
    EXPENSE = "expense"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    OPENING_BALANCE = "opening_balance"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ReferenceType(str, Enum):
    ORDER = "order"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    EXPENSE = "expense"


class ExpenseStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
