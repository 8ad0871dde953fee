from sqlalchemy import Column, Integer, String, Enum, DateTime, Boolean
from enum import Enum as PyEnum
from datetime import datetime
from database import Base


class UserRole(PyEnum):
    STAFF = "staff"
    DIRECTOR = "director"
    SECRETARY = "secretary"
    RESPONSIBLE = "responsible"


class User(Base):
    __tablename__ = 'profiles'

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=False)
    full_name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(Enum(UserRole, values_callable=lambda e: [m.value for m in e]), nullable=False)
    department = Column(String, nullable=False, default="")

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
