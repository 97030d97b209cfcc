# backend/schemas/auth.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from backend.schemas.common import RequestModel


class LoginRequest(RequestModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(RequestModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class UpdateUsernameRequest(RequestModel):
    current_password: Optional[str] = None
    new_username: Optional[str] = None


class UserOut(BaseModel):
    id: int
    username: str
    role: str


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    user: UserOut
    expiresIn: int
