# create_tables.py
import logging

from database import engine, Base
# Importa todos los modelos para que se registren con Base
from modules.orders.models import User, Order, Signature, OrderArtifact  # noqa: F401

logger = logging.getLogger(__name__)


def create_tables(bind=engine):
    """Crea todas las tablas en la base de datos"""
    logger.info("Tables to create: %s", list(Base.metadata.tables.keys()))
    Base.metadata.create_all(bind=bind)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_tables()
