from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from seatledger.config import settings


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(owner_id: str) -> str:
    expire = _now() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": str(owner_id), "type": "access", "exp": int(expire.timestamp())}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_access_token(token: str) -> str:
    """Return the owner id carried by an access token."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    owner_id = payload.get("sub")
    if not owner_id:
        raise JWTError("Token has no subject")
    return str(owner_id)
