from .user import User, UserRole
from .order import Order, OrderArtifact, OrderStatus, CLOSED_STATUSES
from .signature import Signature

__all__ = [
    'User', 'UserRole',
    'Order', 'OrderArtifact', 'OrderStatus', 'CLOSED_STATUSES',
    'Signature',
]
