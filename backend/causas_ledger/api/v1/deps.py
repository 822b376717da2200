# causas_ledger/api/v1/deps.py

import secrets
import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import jwt

from causas_ledger.db.database import get_db
from causas_ledger.db.models import User, UserRole
from causas_ledger.core.config import settings
from causas_ledger.utils.exceptions import UnauthorizedError

security = HTTPBearer(auto_error=False)

# ============================================================================
# JWT Dependency
# ============================================================================

def _extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> str:
    """Bearer header first, then the session cookie set by the web app."""
    if credentials and credentials.credentials:
        return credentials.credentials
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Access denied, token not provided"
    )


def _user_from_token(token: str, db: Session) -> User:
    try:
        # PyJWT checks "exp" itself and raises ExpiredSignatureError
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired"
        )
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    # Accept either "user_id" or the standard "sub" claim
    raw_user_id = payload.get("user_id") or payload.get("sub") or payload.get("userId")
    try:
        user_id = uuid.UUID(str(raw_user_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    user = db.query(User).filter(User.id == user_id).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is deactivated"
        )

    return user


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Validate JWT token and return current user.
    """
    return _user_from_token(_extract_token(request, credentials), db)


def get_ledger_caller(
    request: Request,
    x_service_token: Optional[str] = Header(None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """
    Ledger endpoints are called by the folder service and the reconciliation
    job (x-service-token) as well as by signed-in users (JWT).
    Returns None for service callers.
    """
    expected = (settings.SERVICE_API_TOKEN or "").strip()
    if expected and x_service_token and secrets.compare_digest(x_service_token.strip(), expected):
        return None
    return _user_from_token(_extract_token(request, credentials), db)


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Repair endpoints are restricted to administrators."""
    if current_user.role != UserRole.admin:
        raise UnauthorizedError()
    return current_user
