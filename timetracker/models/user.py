"""User model definitions."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field


class UserRole(str, Enum):
    """User roles. Managers and admins may decide on time entries."""

    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


APPROVER_ROLES = {UserRole.ADMIN.value, UserRole.MANAGER.value}


class UserBase(BaseModel):
    """Base user fields."""

    email: EmailStr
    name: str


class UserCreate(UserBase):
    """User creation model with password."""

    password: str


class User(UserBase):
    """User model without password (for API responses)."""

    id: str = Field(alias="_id", serialization_alias="id")
    role: UserRole = UserRole.EMPLOYEE
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class UserInDB(User):
    """User model with hashed password (for database storage)."""

    hashed_password: str
