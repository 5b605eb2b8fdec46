from datetime import datetime, timedelta, timezone

from jose import jwt

from stockledger.core.config import settings


def create_access_token(subject: str, role: str, business_id: str) -> str:
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": subject,
        "role": role,
        "bid": business_id,
        "type": "access",
        "iss": settings.issuer,
        "exp": expires_at,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm], issuer=settings.issuer)
