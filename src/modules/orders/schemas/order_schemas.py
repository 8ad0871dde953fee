from datetime import datetime
from typing import Annotated, List, Optional, Tuple

from pydantic import BaseModel, Field

from modules.orders.models import Order, OrderStatus, UserRole
from modules.orders.services.order_status import REQUIRED_SIGNATURES
from modules.orders.services.permission import can_perform_action


class SignatureResponse(BaseModel):
    id: int
    order_id: int
    user_id: int
    signer_name: Optional[str] = None
    signer_role: Optional[UserRole] = None
    signature_data: str
    created_at: datetime

    @classmethod
    def from_signature(cls, signature) -> "SignatureResponse":
        signer = signature.signer
        return cls(
            id=signature.id,
            order_id=signature.order_id,
            user_id=signature.user_id,
            signer_name=signer.full_name if signer else None,
            signer_role=signer.role if signer else None,
            signature_data=signature.signature_data,
            created_at=signature.created_at,
        )


class OrderResponse(BaseModel):
    id: int
    title: str
    description: str
    department: str
    notes: Optional[str] = None
    status: OrderStatus
    submitted_by: int
    submitter_name: Optional[str] = None
    submitted_at: datetime
    document_path: str
    pdf_url: Optional[str] = None
    signatures: List[SignatureResponse] = []
    signature_count: int
    required_signatures: int = REQUIRED_SIGNATURES
    can_sign: bool = False

    @classmethod
    def from_order(cls, order: Order, viewer=None) -> "OrderResponse":
        signer_ids = {s.user_id for s in order.signatures}
        can_sign = bool(
            viewer is not None
            and can_perform_action(viewer.role, "sign")
            and not order.is_closed
            and order.pdf_url
            and viewer.id not in signer_ids
        )
        return cls(
            id=order.id,
            title=order.title,
            description=order.description,
            department=order.department,
            notes=order.notes,
            status=order.status,
            submitted_by=order.submitted_by,
            submitter_name=order.submitter.full_name if order.submitter else None,
            submitted_at=order.submitted_at,
            document_path=order.document_path,
            pdf_url=order.pdf_url,
            signatures=[SignatureResponse.from_signature(s) for s in order.signatures],
            signature_count=len(order.signatures),
            can_sign=can_sign,
        )


Coordinate = Annotated[float, Field(allow_inf_nan=False)]


class SignRequest(BaseModel):
    """
    Freehand strokes as drawn on the client canvas (origin top-left), or the
    canvas already exported as a PNG data URL in `signature_data`.
    """
    strokes: List[List[Tuple[Coordinate, Coordinate]]] = Field(default_factory=list)
    signature_data: Optional[str] = None
    canvas_width: int = Field(400, gt=0, le=4000)
    canvas_height: int = Field(200, gt=0, le=4000)


class SignResponse(BaseModel):
    message: str
    signature: SignatureResponse
    pdf_url: str
    order: OrderResponse
