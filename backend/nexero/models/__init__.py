from .tenancy import Organization, DocumentSequence
from .auth import User, SessionToken
from .customers import Client
from .inventory import Product, InventoryMovement, PurchaseReceipt, PurchaseReceiptLine
from .sales import Order, OrderItem, OrderReturn, OrderReturnItem
from .finance import FinancialTransaction

__all__ = [
    'Organization', 'DocumentSequence',
    'User', 'SessionToken',
    'Client',
    'Product', 'InventoryMovement', 'PurchaseReceipt', 'PurchaseReceiptLine',
    'Order', 'OrderItem', 'OrderReturn', 'OrderReturnItem',
    'FinancialTransaction',
]
