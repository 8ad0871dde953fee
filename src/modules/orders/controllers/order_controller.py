import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy.orm import Session

from config import Settings, get_settings
from database import get_db
from modules.auth.controllers.auth_controller import get_current_user
from modules.auth.dependencies import require_permission
from modules.orders.errors import OrderError
from modules.orders.models.user import User
from modules.orders.schemas import OrderResponse, SignatureResponse, SignRequest, SignResponse
from modules.orders.services import OrderLoader, OrderService, SigningGuard, SigningOrchestrator
from modules.orders.services.canvas_capture import ImageCapture, SignatureCanvas
from modules.storage.dependencies import get_artifact_store
from modules.storage.services.artifact_store import LocalArtifactStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])


def http_error(e: OrderError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_detail())


def get_signing_guard(request: Request) -> SigningGuard:
    return request.app.state.signing_guard


@router.get("", response_model=List[OrderResponse])
def list_orders(
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Todas las órdenes con sus firmas, la más reciente primero."""
    orders = OrderService.filter_orders(OrderLoader(db).load_all(), q)
    return [OrderResponse.from_order(o, current_user) for o in orders]


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        order = OrderLoader(db).load_one(order_id)
    except OrderError as e:
        raise http_error(e)
    return OrderResponse.from_order(order, current_user)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    title: str = Form(..., min_length=1),
    description: str = Form(""),
    department: str = Form(..., min_length=1),
    notes: Optional[str] = Form(None),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    store: LocalArtifactStore = Depends(get_artifact_store),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(require_permission("create")),
):
    contents = await file.read()
    try:
        order = OrderService.create_order(
            db, store,
            submitter_id=current_user.id,
            title=title,
            description=description,
            department=department,
            notes=notes,
            file_contents=contents,
            filename=file.filename,
            content_type=file.content_type,
            max_file_size=settings.max_pdf_size,
            cache_control=settings.CACHE_CONTROL,
        )
        order = OrderLoader(db).load_one(order.id)
    except OrderError as e:
        raise http_error(e)
    return OrderResponse.from_order(order, current_user)


@router.post("/{order_id}/sign", response_model=SignResponse)
def sign_order(
    order_id: int,
    payload: SignRequest,
    db: Session = Depends(get_db),
    store: LocalArtifactStore = Depends(get_artifact_store),
    guard: SigningGuard = Depends(get_signing_guard),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(require_permission("sign")),
):
    """
    Dibuja la firma recibida, la estampa en la primera página del PDF y
    guarda la nueva revisión.
    """
    orchestrator = SigningOrchestrator(db, store, guard=guard, cache_control=settings.CACHE_CONTROL)
    try:
        if payload.signature_data:
            canvas = ImageCapture.from_data_url(payload.signature_data)
        else:
            canvas = SignatureCanvas.from_strokes(
                payload.strokes, width=payload.canvas_width, height=payload.canvas_height
            )
        result = orchestrator.sign(order_id, current_user, canvas)
    except OrderError as e:
        raise http_error(e)
    return SignResponse(
        message="Firma añadida",
        signature=SignatureResponse.from_signature(result.signature),
        pdf_url=result.pdf_url,
        order=OrderResponse.from_order(result.order, current_user),
    )


@router.post("/{order_id}/reject", response_model=OrderResponse)
def reject_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission("reject")),
):
    try:
        OrderService.reject_order(db, order_id)
        order = OrderLoader(db).load_one(order_id)
    except OrderError as e:
        raise http_error(e)
    return OrderResponse.from_order(order, current_user)


@router.delete("/{order_id}")
def delete_order(
    order_id: int,
    db: Session = Depends(get_db),
    store: LocalArtifactStore = Depends(get_artifact_store),
    current_user: User = Depends(require_permission("delete")),
):
    try:
        OrderService.delete_order(db, store, order_id)
    except OrderError as e:
        raise http_error(e)
    return {"message": "Orden eliminada", "order_id": order_id}
