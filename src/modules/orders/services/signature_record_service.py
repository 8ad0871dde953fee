import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from modules.orders.errors import DuplicateSignature, OrderClosed, OrderNotFound, UserNotFound
from modules.orders.models import Order, OrderArtifact, Signature, User
from modules.orders.services.canvas_capture import RasterImage
from modules.orders.services.order_status import derive_status

logger = logging.getLogger(__name__)


class SignatureRecordService:
    """
    Writes signature rows and the order's latest-PDF pointer.

    The two writes are separate commits; a failure between them leaves a
    signature without a matching PDF revision.
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def _get_order(self, order_id: int) -> Order:
        order = self.db.get(Order, order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        return order

    def _signer_roles(self, order_id: int) -> list:
        rows = (
            self.db.query(User.role)
            .join(Signature, Signature.user_id == User.id)
            .filter(Signature.order_id == order_id)
            .order_by(Signature.created_at, Signature.id)
            .all()
        )
        return [row[0] for row in rows]

    def record_signature(self, order_id: int, signer_id: int, image: RasterImage) -> Signature:
        order = self._get_order(order_id)
        signer = self.db.get(User, signer_id)
        if not signer:
            raise UserNotFound(f"User {signer_id} not found")
        if order.is_closed:
            raise OrderClosed(f"Order {order_id} is {order.status.value}")

        already_signed = (
            self.db.query(Signature.id)
            .filter(Signature.order_id == order_id, Signature.user_id == signer_id)
            .first()
        )
        if already_signed:
            raise DuplicateSignature(f"User {signer_id} already signed order {order_id}")

        signature = Signature(
            order_id=order_id,
            user_id=signer_id,
            signature_data=image.to_data_url(),
        )
        self.db.add(signature)
        try:
            self.db.flush()
            order.status = derive_status(self._signer_roles(order_id), current=order.status)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateSignature(f"User {signer_id} already signed order {order_id}")

        logger.info(
            "Recorded signature %s on order %s by user %s (status: %s)",
            signature.id, order_id, signer_id, order.status.value,
        )
        return signature

    def update_order_pdf_url(self, order_id: int, new_url: str, path: str = None) -> None:
        order = self._get_order(order_id)
        order.pdf_url = new_url
        if path:
            self.db.add(OrderArtifact(order_id=order_id, path=path))
        self.db.commit()
        logger.info("Order %s now points to %s", order_id, new_url)
