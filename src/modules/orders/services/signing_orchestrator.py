import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Optional, Set, Union

from sqlalchemy.orm import Session

from modules.orders.errors import (
    MissingDocument, OrderClosed, OrderError, OrderNotFound, SignerNotAllowed, SigningInProgress,
)
from modules.orders.models import Order, Signature, User
from modules.orders.services.canvas_capture import ImageCapture, SignatureCanvas
from modules.orders.services.order_loader import OrderLoader
from modules.orders.services.pdf_mutator import embed_signature
from modules.orders.services.permission import can_perform_action
from modules.orders.services.placement import placement_for
from modules.orders.services.signature_record_service import SignatureRecordService
from modules.storage.services.artifact_store import LocalArtifactStore, make_key

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

SignatureSource = Union[SignatureCanvas, ImageCapture]


class SigningGuard:
    """Holds the ids of orders with a signature in flight in this process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight: Set[int] = set()

    @contextmanager
    def hold(self, order_id: int):
        with self._lock:
            if order_id in self._in_flight:
                raise SigningInProgress(f"Order {order_id} is already being signed")
            self._in_flight.add(order_id)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(order_id)

    def is_held(self, order_id: int) -> bool:
        with self._lock:
            return order_id in self._in_flight


@dataclass
class SigningResult:
    signature: Signature
    pdf_url: str
    order: Order
    orders: List[Order] = field(default_factory=list)


def signature_caption(signer: User) -> str:
    return f"{signer.full_name} ({signer.role.value})"


class SigningOrchestrator:
    """
    Applies one signature to an order:

    1. resolve the order's current PDF URL
    2. rasterize the canvas
    3. look up the stamp position for the signer's role
    4. record the signature
    5. fetch the PDF, stamp it, upload the new revision
    6. point the order at the new revision
    7. reload every order

    Each step raises on failure and the remaining steps are skipped. Nothing
    is rolled back: a failure after step 4 leaves the signature recorded while
    the order keeps its previous PDF URL.
    """

    def __init__(self, db_session: Session, store: LocalArtifactStore,
                 guard: Optional[SigningGuard] = None, cache_control: Optional[str] = None):
        self.db = db_session
        self.store = store
        self.guard = guard or SigningGuard()
        self.cache_control = cache_control
        self.records = SignatureRecordService(db_session)
        self.loader = OrderLoader(db_session)

    def sign(self, order_id: int, signer: User, canvas: SignatureSource) -> SigningResult:
        if not can_perform_action(signer.role, "sign"):
            raise SignerNotAllowed(f"Role '{signer.role.value}' cannot sign orders")

        with self.guard.hold(order_id):
            return self._sign(order_id, signer, canvas)

    def _sign(self, order_id: int, signer: User, canvas: SignatureSource) -> SigningResult:
        # 1) PDF actual de la orden
        order = self.db.get(Order, order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        if order.is_closed:
            raise OrderClosed(f"Order {order_id} is {order.status.value}")
        base_url = order.pdf_url
        if not base_url:
            raise MissingDocument(f"Order {order_id} has no PDF")

        # 2) Imagen de la firma
        image = canvas.export_image()

        # 3) Posición según el rol
        x, y = placement_for(signer.role)

        # 4) Registro de la firma
        signature = self.records.record_signature(order_id, signer.id, image)
        signature_id = signature.id

        stage = "fetch"
        try:
            # 5) Estampar y subir la nueva revisión
            base_pdf = self.store.fetch(base_url)
            stage = "stamp"
            signed_pdf = embed_signature(base_pdf, image, x, y, signature_caption(signer))
            stage = "upload"
            key = make_key("signatures", f"{signature_id}-{signer.role.value}-signed.pdf")
            new_url = self.store.upload(
                key, signed_pdf, PDF_CONTENT_TYPE, cache_control=self.cache_control
            )
            # 6) Actualizar el puntero de la orden
            stage = "update_pdf_url"
            self.records.update_order_pdf_url(order_id, new_url, path=key)
        except OrderError as e:
            e.stage = stage
            e.signature_recorded = True
            logger.warning(
                "Signature %s recorded on order %s but the PDF was not updated (failed at %s): %s",
                signature_id, order_id, stage, e,
            )
            raise

        # 7) Recargar el estado completo
        orders = self.loader.load_all()
        refreshed = next(o for o in orders if o.id == order_id)
        logger.info("Order %s signed by %s; status is now %s",
                    order_id, signer.role.value, refreshed.status.value)
        return SigningResult(
            signature=self.db.get(Signature, signature_id),
            pdf_url=new_url,
            order=refreshed,
            orders=orders,
        )
