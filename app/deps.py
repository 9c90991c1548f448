from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import UnauthenticatedError
from app.core.security import verify_access_token
from app.db.session import get_db
from app.modules.user_management.models.user import User
from app.modules.user_management.services.user import get_user

# OAuth2 token URL; auto_error is off so a missing token goes through our 401 body
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/user/login", auto_error=False)

def get_current_user(db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)) -> User:
    """
    Dependency for getting current authenticated user
    """
    if not token:
        raise UnauthenticatedError("Unauthenticated")

    user_id = verify_access_token(token)
    if not user_id:
        raise UnauthenticatedError("Could not validate credentials")

    user = get_user(db, user_id=user_id)
    if not user or not user.is_active:
        raise UnauthenticatedError("Could not validate credentials")

    return user
