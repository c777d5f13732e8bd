"""Auth Pydantic schemas for request / response validation."""


import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from hrms.config import settings


# ── Requests ────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=72)


class RefreshRequest(BaseModel):
    refresh_token: str


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    current_password: Optional[str] = Field(default=None, max_length=72)
    new_password: Optional[str] = Field(
        default=None, min_length=settings.MIN_PASSWORD_LENGTH, max_length=72,
    )

    @model_validator(mode="after")
    def _password_change_needs_current(self):
        if self.new_password and not self.current_password:
            raise ValueError("current_password is required to set a new password")
        return self


# ── Embedded / Shared ──────────────────────────────────────────────

class DeptBrief(BaseModel):
    id: uuid.UUID
    name: str


class UserInfo(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: str
    department_id: Optional[uuid.UUID] = None
    department: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None


# ── Responses ───────────────────────────────────────────────────────

class TokenResponse(BaseModel):
    token: str
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    role: str
    user: UserInfo


class RefreshResponse(BaseModel):
    token: str
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone: Optional[str] = None
    position: Optional[str] = None
    role: str
    permissions: list[str]
    department: Optional[DeptBrief] = None
    manager_id: Optional[uuid.UUID] = None
    direct_reports_count: int
