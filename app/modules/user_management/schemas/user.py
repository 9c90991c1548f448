from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

def _normalize_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value

class UserSummary(BaseModel):
    """Public view of a user, safe to embed in likes and comments"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str
    last_name: str

class User(UserSummary):
    """User model returned to its owner"""
    email: EmailStr
    created_at: datetime

class UserCreate(BaseModel):
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)

    _normalize_names = field_validator("first_name", "last_name")(_normalize_name)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)

    _normalize_names = field_validator("first_name", "last_name")(_normalize_name)

class PasswordUpdate(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=72)
