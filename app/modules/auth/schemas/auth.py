from pydantic import BaseModel, EmailStr, field_validator

from app.modules.user_management.schemas.user import User

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

class AuthResponse(BaseModel):
    """Returned by register and login: the user plus a bearer token"""
    message: str
    user: User
    token: str
    token_type: str = "bearer"

class MessageResponse(BaseModel):
    message: str
