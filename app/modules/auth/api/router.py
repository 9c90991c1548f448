"""Authentication router: register, login, logout"""
from typing import Any
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.exceptions import UnauthenticatedError
from app.core.security import create_access_token
from app.db.session import get_db
from app.deps import get_current_user
from app.modules.auth.schemas.auth import AuthResponse, LoginRequest, MessageResponse
from app.modules.user_management.models.user import User
from app.modules.user_management.schemas.user import UserCreate
from app.modules.user_management.services.user import authenticate, create_user

router = APIRouter()
logger = logging.getLogger("app")

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(*, db: Session = Depends(get_db), user_in: UserCreate) -> Any:
    """Create an account and return a bearer token for it"""
    user = create_user(db, user_in)
    return {
        "message": "Registered successfully",
        "user": user,
        "token": create_access_token(user.id),
    }

@router.post("/login", response_model=AuthResponse)
def login(*, db: Session = Depends(get_db), credentials: LoginRequest) -> Any:
    """Exchange email and password for a bearer token"""
    user = authenticate(db, credentials.email, credentials.password)
    if not user:
        logger.warning(f"Failed login for {credentials.email}")
        raise UnauthenticatedError("Wrong credentials")

    return {
        "message": "Logged in successfully",
        "user": user,
        "token": create_access_token(user.id),
    }

@router.post("/logout", response_model=MessageResponse)
def logout(current_user: User = Depends(get_current_user)) -> Any:
    """Tokens are stateless; the client drops its session"""
    logger.info(f"User {current_user.id} logged out")
    return {"message": "Logged out successfully"}
