import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, get_settings
from create_tables import create_tables
from database import SessionLocal
from modules.auth.controllers.auth_controller import router as auth_router
from modules.auth.services.auth_service import AuthService
from modules.orders.controllers.order_controller import router as order_router
from modules.orders.models import User, UserRole
from modules.orders.services import SigningGuard
from modules.storage.controllers.storage_controller import router as storage_router
from modules.storage.services.artifact_store import LocalArtifactStore

logger = logging.getLogger(__name__)

DEMO_USERS = [
    ("staff@orders.org", "staff123", "Lucía Romero", UserRole.STAFF, "finance"),
    ("director@orders.org", "director123", "Marta Díaz", UserRole.DIRECTOR, "admin"),
    ("secretary@orders.org", "secretary123", "Pablo Ortega", UserRole.SECRETARY, "admin"),
    ("responsible@orders.org", "responsible123", "Inés Navarro", UserRole.RESPONSIBLE, "finance"),
]


def _seed_demo_users():
    """Crea usuarios de prueba con contraseñas."""
    with SessionLocal() as session:
        if session.query(User).count() > 0:
            logger.info("Demo users already exist")
            return
        session.add_all([
            User(
                email=email,
                full_name=name,
                password_hash=AuthService.get_password_hash(password),
                role=role,
                department=department,
                is_active=True,
            )
            for email, password, name, role, department in DEMO_USERS
        ])
        session.commit()
        for email, password, _, role, _ in DEMO_USERS:
            logger.info("Demo user %s (%s) / %s", email, role.value, password)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup logic ---
    logger.info("Starting %s", app.title)
    create_tables()
    if app.state.settings.SEED_DEMO_USERS:
        _seed_demo_users()
    yield
    # --- Shutdown logic ---
    logger.info("Application stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title=settings.APP_NAME,
        description="API para la aprobación de órdenes con firma sobre PDF",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.artifact_store = LocalArtifactStore(
        settings.STORAGE_DIR,
        settings.PUBLIC_BASE_URL,
        bucket=settings.STORAGE_BUCKET,
        timeout=settings.FETCH_TIMEOUT_SECONDS,
    )
    app.state.signing_guard = SigningGuard()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Content-Type", "Authorization", "X-Requested-With", "Origin"],
        max_age=86400,
    )

    # Routers
    app.include_router(auth_router)
    app.include_router(order_router, prefix="/orders")
    app.include_router(storage_router)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
