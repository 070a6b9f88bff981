from shopvault.models.inventory import InventoryTransaction, TransactionType
from shopvault.models.order import Order, OrderCounter, OrderItem, OrderStatus, OrderStatusEntry
from shopvault.models.product import MANUAL_STATUSES, Product, ProductStatus
from shopvault.models.user import User, UserRole

__all__ = [
    "InventoryTransaction",
    "TransactionType",
    "Order",
    "OrderCounter",
    "OrderItem",
    "OrderStatus",
    "OrderStatusEntry",
    "MANUAL_STATUSES",
    "Product",
    "ProductStatus",
    "User",
    "UserRole",
]
