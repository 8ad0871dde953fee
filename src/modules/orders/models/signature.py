# src/modules/orders/models/signature.py

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from database import Base


class Signature(Base):
    __tablename__ = "signatures"
    __table_args__ = (
        UniqueConstraint("order_id", "user_id", name="uq_signatures_order_signer"),
    )

    id             = Column(Integer, primary_key=True)
    order_id       = Column(Integer, ForeignKey("orders.id"),   nullable=False)
    user_id        = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    signature_data = Column(Text, nullable=False)
    created_at     = Column(DateTime, default=datetime.utcnow, nullable=False)

    order  = relationship("Order", back_populates="signatures")
    signer = relationship("User")
