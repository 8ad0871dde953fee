from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum
from database import Base


class OrderStatus(PyEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    APPROVED = "approved"
    REJECTED = "rejected"


CLOSED_STATUSES = (OrderStatus.APPROVED, OrderStatus.REJECTED)


class Order(Base):
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    department = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(
        Enum(OrderStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    document_path = Column(String, nullable=False)
    pdf_url = Column(String, nullable=True)
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    rejected_at = Column(DateTime, nullable=True)

    submitted_by = Column(Integer, ForeignKey('profiles.id'), nullable=False)
    submitter = relationship("User")

    # Firmas en orden de aplicación
    signatures = relationship(
        "Signature",
        back_populates="order",
        order_by="[Signature.created_at, Signature.id]",
        cascade="all, delete-orphan",
    )
    artifacts = relationship(
        "OrderArtifact",
        back_populates="order",
        order_by="OrderArtifact.id",
        cascade="all, delete-orphan",
    )

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES


class OrderArtifact(Base):
    """Every storage key produced for an order: the upload and each signed revision."""
    __tablename__ = 'order_artifacts'

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id'), nullable=False)
    path = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    order = relationship("Order", back_populates="artifacts")
