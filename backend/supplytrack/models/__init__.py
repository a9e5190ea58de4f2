from .auth import User, SessionToken
from .products import Product, ProductTimelineEntry
from .ledger import Transaction, TransactionTimelineEntry, TransactionDelay

__all__ = [
    'User', 'SessionToken',
    'Product', 'ProductTimelineEntry',
    'Transaction', 'TransactionTimelineEntry', 'TransactionDelay',
]
