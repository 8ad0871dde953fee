from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from modules.orders.models.user import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    user_id: int
    user_name: str
    user_role: UserRole


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)
    full_name: str = Field(min_length=1)
    role: UserRole
    department: str = ""


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: str
    role: UserRole
    department: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
