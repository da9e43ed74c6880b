"""Users: trainers, reviewing authorities and trainees."""
from datetime import datetime
from enum import Enum
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, EmailStr, Field, field_validator


class UserRole(str, Enum):
    TRAINER = "trainer"
    AUTHORITY = "authority"
    TRAINEE = "trainee"


class User(Document):
    """User document; demographic fields feed the attendance snapshots."""

    name: str
    email: Indexed(str, unique=True)
    hashed_password: str
    role: UserRole = UserRole.TRAINER
    organization: str = "NDMA Training Institute"
    phone: Optional[str] = None
    is_active: bool = True

    # Trainee demographics, copied into report snapshots at link time
    age_bracket: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
        use_state_management = True


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: UserRole = UserRole.TRAINER
    organization: Optional[str] = None
    phone: Optional[str] = None
    age_bracket: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None

    @field_validator("name", "password")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value


class UserUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    organization: Optional[str] = None
    age_bracket: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None


def serialize_user(user: User) -> dict:
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "organization": user.organization,
        "phone": user.phone,
        "age_bracket": user.age_bracket,
        "district": user.district,
        "state": user.state,
        "created_at": user.created_at.isoformat(),
    }
