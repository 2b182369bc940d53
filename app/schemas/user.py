# ===================================
# app/schemas/user.py
# ===================================
import re
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, validator

from app.models.user import UserRole


def check_password_strength(password: str) -> str:
    """Au moins 8 caractères, dont au moins une lettre et un chiffre"""
    if len(password) < 8:
        raise ValueError("Le mot de passe doit contenir au moins 8 caractères")
    if not re.search(r"[a-zA-Z]", password) or not re.search(r"\d", password):
        raise ValueError("Le mot de passe doit contenir au moins une lettre et un chiffre")
    return password


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str

    @validator("password")
    def validate_password(cls, v):
        return check_password_strength(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserChangePassword(BaseModel):
    current_password: str
    new_password: str

    @validator("new_password")
    def validate_new_password(cls, v):
        return check_password_strength(v)


class UserRoleUpdate(BaseModel):
    role: UserRole


class User(BaseModel):
    id: int
    name: str
    email: str
    role: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: User


class AuthResponse(BaseModel):
    success: bool = True
    message: str
    data: Token


class UserResponse(BaseModel):
    success: bool = True
    message: str
    data: User


class UsersListResponse(BaseModel):
    success: bool = True
    data: List[User]
    total: int
    page: int
    per_page: int
