from typing import List

from sqlalchemy.orm import Session, selectinload

from modules.orders.errors import OrderNotFound
from modules.orders.models import Order, Signature


class OrderLoader:
    """Single read path for orders: every call rebuilds the aggregates from the store."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def _query(self):
        return (
            self.db.query(Order)
            .options(
                selectinload(Order.signatures).selectinload(Signature.signer),
                selectinload(Order.submitter),
            )
            .populate_existing()
        )

    def load_all(self) -> List[Order]:
        """Todas las órdenes, la más reciente primero, con sus firmas en orden de creación."""
        return (
            self._query()
            .order_by(Order.submitted_at.desc(), Order.id.desc())
            .all()
        )

    def load_one(self, order_id: int) -> Order:
        order = self._query().filter(Order.id == order_id).first()
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        return order
