from .tenancy import Store
from .inventory import Product, StockMovement
from .sales import Transaction, TransactionItem
from .documents import InvoiceSequence

__all__ = [
    'Store',
    'Product', 'StockMovement',
    'Transaction', 'TransactionItem',
    'InvoiceSequence',
]
