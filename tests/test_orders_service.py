import pytest
from datetime import datetime, timedelta

from conftest import TestingSessionLocal, create_dummy_order as create_order, create_dummy_pdf_bytes, drawn_canvas
from modules.orders.errors import (
    DuplicateSignature, InvalidUpload, MalformedDocument, OrderClosed, OrderNotFound,
    PermissionDenied, UserNotFound,
)
from modules.orders.models import Order, OrderArtifact, OrderStatus, Signature, UserRole
from modules.orders.services import OrderLoader, OrderService, SignatureRecordService


# --- Creación de órdenes ---

def test_create_order_uploads_document_and_starts_pending(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])

    assert order.id is not None
    assert order.status == OrderStatus.PENDING
    assert order.document_path.startswith("orders/")
    assert order.document_path.endswith("-budget.pdf")
    assert order.pdf_url == store.get_public_url(order.document_path)
    assert store.fetch(order.pdf_url).startswith(b"%PDF")
    assert [a.path for a in order.artifacts] == [order.document_path]
    assert order.signatures == []


def test_create_order_rejects_non_pdf(session, store, users):
    with pytest.raises(InvalidUpload):
        OrderService.create_order(
            session, store, users[UserRole.STAFF].id, "T", "", "hr",
            b"Fake DOCX content", "no_pdf.docx",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        )


def test_create_order_rejects_corrupt_pdf(session, store, users):
    with pytest.raises(MalformedDocument):
        OrderService.create_order(
            session, store, users[UserRole.STAFF].id, "T", "", "hr",
            b"%PDF-1.4 broken", "broken.pdf", "application/pdf",
        )
    assert session.query(Order).count() == 0


def test_create_order_rejects_oversized_file(session, store, users):
    with pytest.raises(InvalidUpload):
        OrderService.create_order(
            session, store, users[UserRole.STAFF].id, "T", "", "hr",
            create_dummy_pdf_bytes(), "big.pdf", "application/pdf", max_file_size=10,
        )


def test_only_staff_can_create_orders(session, store, users):
    with pytest.raises(PermissionDenied):
        create_order(session, store, users[UserRole.DIRECTOR])


# --- Registro de firmas ---

def test_record_signature_updates_status(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    records = SignatureRecordService(session)
    image = drawn_canvas().export_image()

    sig = records.record_signature(order.id, users[UserRole.DIRECTOR].id, image)
    assert sig.id is not None
    assert sig.created_at is not None
    assert sig.signature_data == image.to_data_url()
    assert session.get(Order, order.id).status == OrderStatus.PROCESSING

    records.record_signature(order.id, users[UserRole.SECRETARY].id, image)
    assert session.get(Order, order.id).status == OrderStatus.APPROVED


def test_record_signature_unknown_order(session, users):
    with pytest.raises(OrderNotFound):
        SignatureRecordService(session).record_signature(
            1234, users[UserRole.DIRECTOR].id, drawn_canvas().export_image()
        )


def test_record_signature_unknown_signer(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    with pytest.raises(UserNotFound):
        SignatureRecordService(session).record_signature(order.id, 999, drawn_canvas().export_image())


def test_one_signature_per_signer_and_order(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    records = SignatureRecordService(session)
    image = drawn_canvas().export_image()

    records.record_signature(order.id, users[UserRole.DIRECTOR].id, image)
    with pytest.raises(DuplicateSignature):
        records.record_signature(order.id, users[UserRole.DIRECTOR].id, image)
    assert session.query(Signature).filter_by(order_id=order.id).count() == 1


def test_closed_order_refuses_signatures(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    OrderService.reject_order(session, order.id)
    with pytest.raises(OrderClosed):
        SignatureRecordService(session).record_signature(
            order.id, users[UserRole.DIRECTOR].id, drawn_canvas().export_image()
        )


def test_update_pdf_url_is_independent_of_signatures(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    records = SignatureRecordService(session)

    records.update_order_pdf_url(order.id, "http://testserver/storage/documents/signatures/1-x.pdf",
                                 path="signatures/1-x.pdf")

    fresh = TestingSessionLocal()
    stored = fresh.get(Order, order.id)
    assert stored.pdf_url.endswith("signatures/1-x.pdf")
    assert stored.status == OrderStatus.PENDING
    assert fresh.query(Signature).count() == 0
    assert fresh.query(OrderArtifact).filter_by(order_id=order.id).count() == 2
    fresh.close()

    with pytest.raises(OrderNotFound):
        records.update_order_pdf_url(999, "http://x")


# --- Carga de agregados ---

def test_load_all_newest_first_with_signatures_in_order(session, store, users):
    staff = users[UserRole.STAFF]
    older = create_order(session, store, staff, title="Older", filename="older.pdf")
    newer = create_order(session, store, staff, title="Newer", filename="newer.pdf")
    older.submitted_at = datetime.utcnow() - timedelta(days=1)
    session.commit()

    records = SignatureRecordService(session)
    image = drawn_canvas().export_image()
    records.record_signature(newer.id, users[UserRole.SECRETARY].id, image)
    records.record_signature(newer.id, users[UserRole.DIRECTOR].id, image)

    orders = OrderLoader(TestingSessionLocal()).load_all()
    assert [o.title for o in orders] == ["Newer", "Older"]
    assert [s.signer.role for s in orders[0].signatures] == [UserRole.SECRETARY, UserRole.DIRECTOR]
    assert orders[0].status == OrderStatus.APPROVED
    assert orders[1].signatures == []


def test_load_one_unknown(session):
    with pytest.raises(OrderNotFound):
        OrderLoader(session).load_one(42)


def test_filter_orders_by_title_or_department(session, store, users):
    staff = users[UserRole.STAFF]
    create_order(session, store, staff, title="Budget Q1", filename="a.pdf", department="finance")
    create_order(session, store, staff, title="Lab chairs", filename="b.pdf", department="academic")
    orders = OrderLoader(session).load_all()

    assert [o.title for o in OrderService.filter_orders(orders, "budget")] == ["Budget Q1"]
    assert [o.title for o in OrderService.filter_orders(orders, "ACADEMIC")] == ["Lab chairs"]
    assert len(OrderService.filter_orders(orders, None)) == 2


# --- Acciones administrativas ---

def test_reject_is_terminal(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    rejected = OrderService.reject_order(session, order.id)
    assert rejected.status == OrderStatus.REJECTED
    assert rejected.rejected_at is not None
    with pytest.raises(OrderClosed):
        OrderService.reject_order(session, order.id)


def test_delete_removes_order_signatures_and_artifacts(session, store, users):
    order = create_order(session, store, users[UserRole.STAFF])
    records = SignatureRecordService(session)
    records.record_signature(order.id, users[UserRole.DIRECTOR].id, drawn_canvas().export_image())
    revision_url = store.upload("signatures/1-director-signed.pdf", b"%PDF-signed")
    records.update_order_pdf_url(order.id, revision_url, path="signatures/1-director-signed.pdf")
    document_path = order.document_path

    OrderService.delete_order(session, store, order.id)

    assert session.query(Order).count() == 0
    assert session.query(Signature).count() == 0
    assert session.query(OrderArtifact).count() == 0
    assert not store.exists(document_path)
    assert not store.exists("signatures/1-director-signed.pdf")


def test_delete_unknown_order(session, store):
    with pytest.raises(OrderNotFound):
        OrderService.delete_order(session, store, 1234)
