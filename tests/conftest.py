import io

import pytest
from PyPDF2 import PdfReader, PdfWriter
from PyPDF2.generic import NameObject, NumberObject
from reportlab.pdfgen import canvas
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from modules.orders.models import User, UserRole
from modules.orders.services import OrderService
from modules.orders.services.canvas_capture import SignatureCanvas
from modules.storage.services.artifact_store import LocalArtifactStore

BASE_URL = "http://testserver"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def clean_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def store(tmp_path):
    return LocalArtifactStore(str(tmp_path / "storage"), BASE_URL, bucket="documents")


def create_dummy_user(session, role=UserRole.STAFF, name=None, email=None, department="finance"):
    name = name or f"Test {role.value.title()}"
    user = User(
        email=email or f"{role.value}@orders.org",
        full_name=name,
        password_hash="not-a-real-hash",
        role=role,
        department=department,
        is_active=True,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def users(session):
    return {role: create_dummy_user(session, role) for role in UserRole}


def create_dummy_pdf_bytes(pages=1, text="Orden de compra para test"):
    buf = io.BytesIO()
    c = canvas.Canvas(buf)
    for number in range(1, pages + 1):
        c.drawString(50, 750, f"{text} - page {number}")
        c.showPage()
    c.save()
    return buf.getvalue()


def create_broken_pdf_bytes():
    """A PDF that parses and counts pages but whose first page content is a number, not a stream."""
    reader = PdfReader(io.BytesIO(create_dummy_pdf_bytes()))
    page = reader.pages[0]
    page[NameObject("/Contents")] = NumberObject(5)
    writer = PdfWriter()
    writer.add_page(page)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


@pytest.fixture
def example_pdf():
    return create_dummy_pdf_bytes()


def drawn_canvas(strokes=None):
    strokes = strokes or [[(10, 10), (60, 40), (120, 20)], [(30, 60), (90, 80)]]
    return SignatureCanvas.from_strokes(strokes)


def create_dummy_order(session, store, submitter, title="Budget Q1", filename="budget.pdf",
                       department="finance", file_contents=None):
    return OrderService.create_order(
        session, store,
        submitter_id=submitter.id,
        title=title,
        description="Quarterly budget",
        department=department,
        file_contents=file_contents or create_dummy_pdf_bytes(),
        filename=filename,
        content_type="application/pdf",
    )
