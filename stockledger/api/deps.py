import uuid

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from stockledger.core.security import decode_token
from stockledger.db.database import get_db
from stockledger.models.enums import UserRole
from stockledger.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

ROLE_PERMISSIONS: dict[UserRole, set[str]] = {
    UserRole.SYSTEM_OWNER: {
        "catalog:manage",
        "inventory:manage",
        "inventory:view",
        "inventory:sell",
        "ledger:post",
        "ledger:void",
    },
    UserRole.BUSINESS_OWNER: {
        "catalog:manage",
        "inventory:manage",
        "inventory:view",
        "inventory:sell",
        "ledger:post",
        "ledger:void",
    },
    UserRole.EMPLOYEE: {"inventory:view", "inventory:sell"},
}


def _clean_candidate(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = value.strip().strip("\"'").strip()
    # Normalize accidental duplicated prefixes like: "Bearer Bearer <jwt>"
    while cleaned.lower().startswith("bearer "):
        cleaned = cleaned[7:].strip().strip("\"'").strip()
    return cleaned or None


def get_current_user(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    raw_token = _clean_candidate(token) or _clean_candidate(request.headers.get("x-access-token"))
    if not raw_token:
        raise credentials_exception

    try:
        payload = decode_token(raw_token)
        if payload.get("type") != "access":
            raise credentials_exception
        user_id = uuid.UUID(str(payload.get("sub")))
    except (JWTError, ValueError) as exc:
        raise credentials_exception from exc

    user = db.get(User, user_id)
    if not user:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


def is_system_owner(current_user: User) -> bool:
    return current_user.role == UserRole.SYSTEM_OWNER or current_user.is_global_access


def require_system_owner(current_user: User = Depends(get_current_user)) -> User:
    if not is_system_owner(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="System owner role required",
        )
    return current_user


def require_permission(permission: str):
    def checker(current_user: User = Depends(get_current_user)) -> User:
        permissions = ROLE_PERMISSIONS.get(current_user.role, set())
        if permission not in permissions:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission required: {permission}",
            )
        return current_user

    return checker


def resolve_business_id(current_user: User, requested_business_id: uuid.UUID | None) -> uuid.UUID:
    """Tenant a request acts on: the user's own, or any one for global users."""
    if is_system_owner(current_user):
        return requested_business_id or current_user.business_id
    if requested_business_id is not None and requested_business_id != current_user.business_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cross-business access is not allowed")
    return current_user.business_id


def idempotency_key(request: Request) -> str | None:
    key = request.headers.get("idempotency-key")
    if key is None:
        return None
    key = key.strip()
    if not key:
        return None
    if len(key) > 150:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Idempotency-Key is too long")
    return key
