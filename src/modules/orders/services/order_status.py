from typing import Iterable, Optional

from modules.orders.models.order import OrderStatus
from modules.orders.models.user import UserRole

REQUIRED_SIGNATURES = 2
REQUIRED_ROLES = frozenset({UserRole.DIRECTOR, UserRole.SECRETARY})


def derive_status(signer_roles: Iterable[UserRole],
                  current: Optional[OrderStatus] = None,
                  required_signatures: int = REQUIRED_SIGNATURES,
                  required_roles: frozenset = REQUIRED_ROLES) -> OrderStatus:
    """
    Status of an order given the roles of everyone who has signed it, in order.

    A rejected order stays rejected. Otherwise the order is approved once it
    holds `required_signatures` signatures covering every required role.
    """
    if current == OrderStatus.REJECTED:
        return OrderStatus.REJECTED

    roles = list(signer_roles)
    if not roles:
        return OrderStatus.PENDING
    if len(roles) >= required_signatures and required_roles.issubset(roles):
        return OrderStatus.APPROVED
    return OrderStatus.PROCESSING
