from stockledger.models.catalog import Business, Customer, PaymentMethod, Product, Supplier
from stockledger.models.inventory import Batch, InventoryEntry, InventoryMovement
from stockledger.models.ledger import Expense, Transaction
from stockledger.models.procurement import Purchase, PurchaseItem
from stockledger.models.sales import Order, OrderItem
from stockledger.models.user import User

__all__ = [
    "Batch",
    "Business",
    "Customer",
    "Expense",
    "InventoryEntry",
    "InventoryMovement",
    "Order",
    "OrderItem",
    "PaymentMethod",
    "Product",
    "Purchase",
    "PurchaseItem",
    "Supplier",
    "Transaction",
    "User",
]
