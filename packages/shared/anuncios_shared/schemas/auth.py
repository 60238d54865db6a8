"""Authentication request/response schemas."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, EmailStr, Field


class SignupRequest(BaseModel):
    email: EmailStr
    password: str
    name: str = Field(..., min_length=1, max_length=200)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    user_id: uuid.UUID
    email: str
    message: str


class MeResponse(BaseModel):
    user_id: uuid.UUID
    email: str
    name: str
    is_admin: bool
