from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from typing import Optional

from app.core import access
from app.core.config import SECRET_KEY, ALGORITHM
from app.crud import crud_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.token import TokenData

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

def _token_subject(token: str) -> TokenData:
    """Decode a bearer token into the email it was issued for."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise _unauthenticated("Could not validate credentials")
    email = payload.get("sub")
    if not email:
        raise _unauthenticated("Could not validate credentials")
    return TokenData(email=email)

async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> Optional[User]:
    """The actor behind the request, or None when no token was sent."""
    if token is None:
        return None
    token_data = _token_subject(token)
    user = crud_user.get_user_by_email(db, email=token_data.email)
    if user is None:
        raise _unauthenticated("Could not validate credentials")
    return user

async def get_current_active_user(
    current_user: Optional[User] = Depends(get_current_user),
) -> User:
    if current_user is None:
        raise _unauthenticated("Not authenticated")
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user

async def get_current_active_superuser(
    current_user: User = Depends(get_current_active_user),
) -> User:
    # Unauthorized is mapped to 403 by the app's CoreError handler
    access.require_admin(current_user, "use this endpoint")
    return current_user
