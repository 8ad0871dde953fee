import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from modules.orders.errors import (
    InvalidArtifactKey, InvalidUpload, OrderClosed, OrderNotFound,
    PermissionDenied, UserNotFound,
)
from modules.orders.models import Order, OrderArtifact, OrderStatus, User
from modules.orders.services.pdf_mutator import count_pages
from modules.orders.services.permission import can_perform_action
from modules.storage.services.artifact_store import LocalArtifactStore, make_key

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class OrderService:

    @staticmethod
    def create_order(
        session: Session,
        store: LocalArtifactStore,
        submitter_id: int,
        title: str,
        description: str,
        department: str,
        file_contents: bytes,
        filename: str,
        content_type: str,
        notes: Optional[str] = None,
        max_file_size: int = 10 * 1024 * 1024,
        cache_control: Optional[str] = None,
    ) -> Order:
        """
        Procesa una nueva orden:
        - Valida el PDF
        - Lo sube a `orders/<timestamp>-<filename>`
        - Crea el registro con estado pending y la URL pública
        """
        submitter = session.get(User, submitter_id)
        if not submitter:
            raise UserNotFound(f"User {submitter_id} not found")
        if not can_perform_action(submitter.role, "create"):
            raise PermissionDenied(f"Role '{submitter.role.value}' cannot create orders")

        OrderService._validate_file(file_contents, filename, content_type, max_file_size)

        key = make_key("orders", filename)
        pdf_url = store.upload(key, file_contents, PDF_CONTENT_TYPE, cache_control=cache_control)

        order = Order(
            title=title,
            description=description,
            department=department,
            notes=notes or None,
            status=OrderStatus.PENDING,
            document_path=key,
            pdf_url=pdf_url,
            submitted_by=submitter_id,
            submitted_at=datetime.utcnow(),
        )
        order.artifacts.append(OrderArtifact(path=key))
        session.add(order)
        try:
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.warning("Order insert failed, removing orphan upload %s", key)
            store.remove([key])
            raise

        logger.info("Order %s '%s' created by user %s", order.id, title, submitter_id)
        return order

    @staticmethod
    def _validate_file(file_contents: bytes, filename: str, content_type: str, max_file_size: int):
        """Valida el archivo subido"""
        if content_type != PDF_CONTENT_TYPE:
            raise InvalidUpload("El archivo debe ser un PDF")

        if not filename or not filename.lower().endswith(".pdf"):
            raise InvalidUpload("La extensión debe ser .pdf")

        if not file_contents:
            raise InvalidUpload("El archivo está vacío")

        if len(file_contents) > max_file_size:
            raise InvalidUpload(f"El tamaño máximo es {max_file_size // (1024*1024)} MB")

        # Validar integridad del PDF
        count_pages(file_contents)

    @staticmethod
    def reject_order(session: Session, order_id: int) -> Order:
        """Administrative rejection; rejected is terminal."""
        order = session.get(Order, order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        if order.is_closed:
            raise OrderClosed(f"Order {order_id} is already {order.status.value}")

        order.status = OrderStatus.REJECTED
        order.rejected_at = datetime.utcnow()
        session.commit()
        logger.info("Order %s rejected", order_id)
        return order

    @staticmethod
    def delete_order(session: Session, store: LocalArtifactStore, order_id: int) -> None:
        """Removes the order, its signatures and every stored PDF revision."""
        order = session.get(Order, order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")

        paths = [artifact.path for artifact in order.artifacts]
        if order.document_path not in paths:
            paths.append(order.document_path)
        latest = store.key_for_url(order.pdf_url) if order.pdf_url else None
        if latest and latest not in paths:
            paths.append(latest)

        session.delete(order)
        session.commit()

        try:
            store.remove(paths)
        except (OSError, InvalidArtifactKey) as e:
            logger.warning("Order %s deleted but some artifacts could not be removed: %s", order_id, e)
        logger.info("Order %s deleted with %d artifacts", order_id, len(paths))

    @staticmethod
    def filter_orders(orders: list, term: Optional[str]) -> list:
        if not term:
            return orders
        term = term.lower()
        return [
            o for o in orders
            if term in o.title.lower() or term in o.department.lower()
        ]
