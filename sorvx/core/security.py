"""Password hashing and signed session tokens (JWT in cookie or bearer header)."""
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from sorvx.core.config import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def create_session_token(user_id: int) -> str:
    """Create a signed session token for the user (auth cookie / bearer)."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(seconds=settings.auth_cookie_max_age)
    to_encode = {"sub": str(user_id), "exp": expire, "type": "session"}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def verify_session_token(token: str) -> int | None:
    """Verify signed token and return user_id if valid; None otherwise."""
    if not token:
        return None
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != "session":
        return None
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None
