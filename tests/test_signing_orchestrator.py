import io

import pytest
from PyPDF2 import PdfReader

from conftest import (
    TestingSessionLocal, create_broken_pdf_bytes, create_dummy_order as create_order, create_dummy_user,
    drawn_canvas,
)
from modules.orders.errors import (
    DuplicateSignature, EmptySignature, MalformedDocument, MissingDocument, OrderClosed, OrderNotFound,
    SignerNotAllowed, SigningInProgress, TransientIOError,
)
from modules.orders.models import Order, OrderStatus, Signature, UserRole
from modules.orders.services import OrderLoader, SigningGuard, SigningOrchestrator
from modules.orders.services.canvas_capture import SignatureCanvas


class FailingUploadStore:
    """Wraps a store so that uploads of signed revisions fail."""

    def __init__(self, store):
        self._store = store

    def __getattr__(self, name):
        return getattr(self._store, name)

    def upload(self, key, *args, **kwargs):
        if key.startswith("signatures/"):
            raise TransientIOError("storage unavailable")
        return self._store.upload(key, *args, **kwargs)


def first_page_text(store, url):
    return PdfReader(io.BytesIO(store.fetch(url))).pages[0].extract_text()


def test_budget_q1_is_approved_after_director_and_secretary(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF], title="Budget Q1")
    original_url = order.pdf_url
    orchestrator = SigningOrchestrator(session, store)

    assert order.status == OrderStatus.PENDING
    assert order.signatures == []

    first = orchestrator.sign(order.id, users[UserRole.DIRECTOR], drawn_canvas())
    assert len(first.order.signatures) == 1
    assert first.order.status == OrderStatus.PROCESSING
    assert first.pdf_url != original_url
    assert first.order.pdf_url == first.pdf_url
    assert "signatures/" in first.pdf_url and first.pdf_url.endswith("-director-signed.pdf")

    second = orchestrator.sign(order.id, users[UserRole.SECRETARY], drawn_canvas())
    assert len(second.order.signatures) == 2
    assert second.order.status == OrderStatus.APPROVED
    assert [o.id for o in second.orders] == [order.id]

    # las dos firmas están sobre el mismo documento
    text = first_page_text(store, second.pdf_url)
    assert "Test Director (director)" in text
    assert "Test Secretary (secretary)" in text

    with pytest.raises(OrderClosed):
        orchestrator.sign(order.id, users[UserRole.RESPONSIBLE], drawn_canvas())

    reloaded = OrderLoader(TestingSessionLocal()).load_one(order.id)
    assert reloaded.status == OrderStatus.APPROVED
    assert reloaded.pdf_url == second.pdf_url
    assert len(reloaded.signatures) == 2


def test_upload_failure_leaves_signature_and_old_pdf_url(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    original_url = order.pdf_url
    orchestrator = SigningOrchestrator(session, FailingUploadStore(store))

    with pytest.raises(TransientIOError) as excinfo:
        orchestrator.sign(order.id, users[UserRole.DIRECTOR], drawn_canvas())
    assert excinfo.value.stage == "upload"
    assert excinfo.value.signature_recorded is True

    reloaded = OrderLoader(TestingSessionLocal()).load_one(order.id)
    assert len(reloaded.signatures) == 1
    assert reloaded.signatures[0].user_id == users[UserRole.DIRECTOR].id
    assert reloaded.pdf_url == original_url
    assert reloaded.status == OrderStatus.PROCESSING


def test_unstampable_pdf_reports_stamp_stage(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF], file_contents=create_broken_pdf_bytes())
    original_url = order.pdf_url
    orchestrator = SigningOrchestrator(session, store)

    with pytest.raises(MalformedDocument) as excinfo:
        orchestrator.sign(order.id, users[UserRole.DIRECTOR], drawn_canvas())
    assert excinfo.value.stage == "stamp"
    assert excinfo.value.signature_recorded is True

    reloaded = OrderLoader(TestingSessionLocal()).load_one(order.id)
    assert len(reloaded.signatures) == 1
    assert reloaded.pdf_url == original_url


def test_empty_canvas_has_no_side_effects(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    orchestrator = SigningOrchestrator(session, store)

    with pytest.raises(EmptySignature):
        orchestrator.sign(order.id, users[UserRole.DIRECTOR], SignatureCanvas())
    assert session.query(Signature).count() == 0
    assert session.get(Order, order.id).status == OrderStatus.PENDING


def test_order_without_pdf_is_refused(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    order.pdf_url = None
    session.commit()

    with pytest.raises(MissingDocument):
        SigningOrchestrator(session, store).sign(order.id, users[UserRole.DIRECTOR], drawn_canvas())
    assert session.query(Signature).count() == 0


def test_unknown_order(session, store, users):
    with pytest.raises(OrderNotFound):
        SigningOrchestrator(session, store).sign(99, users[UserRole.DIRECTOR], drawn_canvas())


def test_staff_cannot_sign(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    with pytest.raises(SignerNotAllowed):
        SigningOrchestrator(session, store).sign(order.id, users[UserRole.STAFF], drawn_canvas())


def test_same_signer_twice_keeps_first_revision(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    orchestrator = SigningOrchestrator(session, store)
    first = orchestrator.sign(order.id, users[UserRole.DIRECTOR], drawn_canvas())

    with pytest.raises(DuplicateSignature):
        orchestrator.sign(order.id, users[UserRole.DIRECTOR], drawn_canvas())
    assert session.get(Order, order.id).pdf_url == first.pdf_url


def test_two_directors_do_not_approve_without_secretary(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    other_director = create_dummy_user(session, UserRole.DIRECTOR, name="Second Director",
                                       email="director2@orders.org")
    orchestrator = SigningOrchestrator(session, store)

    orchestrator.sign(order.id, users[UserRole.DIRECTOR], drawn_canvas())
    result = orchestrator.sign(order.id, other_director, drawn_canvas())
    assert len(result.order.signatures) == 2
    assert result.order.status == OrderStatus.PROCESSING


def test_concurrent_signing_of_same_order_is_refused(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    guard = SigningGuard()
    orchestrator = SigningOrchestrator(session, store, guard=guard)

    with guard.hold(order.id):
        with pytest.raises(SigningInProgress):
            orchestrator.sign(order.id, users[UserRole.DIRECTOR], drawn_canvas())
    assert not guard.is_held(order.id)
    assert session.query(Signature).count() == 0

    orchestrator.sign(order.id, users[UserRole.DIRECTOR], drawn_canvas())
    assert not guard.is_held(order.id)
