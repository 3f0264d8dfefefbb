from .registers import Terminal
from .auth import User
from .customers import Customer
from .catalog import Category, Product
from .sales import SaleTransaction, SaleLineItem, SalePayment, SalePaymentDetail
from .inventory import InventoryMovement
from .documents import TransactionSequence

__all__ = [
    'Terminal',
    'User',
    'Customer',
    'Category', 'Product',
    'SaleTransaction', 'SaleLineItem', 'SalePayment', 'SalePaymentDetail',
    'InventoryMovement',
    'TransactionSequence',
]
