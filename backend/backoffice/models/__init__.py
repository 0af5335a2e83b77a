from .auth import User, SessionToken
from .clients import Client
from .debtors import Debtor, DEBTOR_STATUSES
from .transactions import Transaction, TRANSACTION_TYPES, MANAGED_TRANSACTION_TYPES, PAYMENT_TYPES
from .products import Product
from .orders import Order, OrderLine, ORDER_STATUSES

__all__ = [
    'User', 'SessionToken',
    'Client',
    'Debtor', 'DEBTOR_STATUSES',
    'Transaction', 'TRANSACTION_TYPES', 'MANAGED_TRANSACTION_TYPES', 'PAYMENT_TYPES',
    'Product',
    'Order', 'OrderLine', 'ORDER_STATUSES',
]
