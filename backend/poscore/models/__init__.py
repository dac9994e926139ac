from .inventory import Product, StockMovement
from .sales import Sale, SaleLine
from .auth import User, SessionToken
from .communications import Notification, NotificationTarget

__all__ = [
    'Product', 'StockMovement',
    'Sale', 'SaleLine',
    'User', 'SessionToken',
    'Notification', 'NotificationTarget',
]
