from .auth import User, SessionToken
from .security import SecurityEvent
from .customers import Customer
from .catalog import Service, ServiceConsumable, ClothingType, ClothingTypePrice
from .invoices import Invoice, InvoiceLine
from .inventory import InventoryItem, InventoryTransaction
from .expenses import Expense

__all__ = [
    'User', 'SessionToken', 'SecurityEvent',
    'Customer',
    'Service', 'ServiceConsumable', 'ClothingType', 'ClothingTypePrice',
    'Invoice', 'InvoiceLine',
    'InventoryItem', 'InventoryTransaction',
    'Expense',
]
