"""User accounts: input validation, lookup, registration, authentication."""
import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sorvx.core.errors import Conflict, StoreUnavailable, ValidationError
from sorvx.core.security import hash_password, verify_password
from sorvx.models.user import User

logger = logging.getLogger(__name__)

# Simple, practical email check
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_PASSWORD_LENGTH = 6
# bcrypt hard limit: 72 bytes (UTF-8)
MAX_PASSWORD_BYTES = 72


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def validate_email(email: str) -> str:
    """Return the normalized email or raise ValidationError."""
    email_norm = normalize_email(email)
    if not email_norm or not EMAIL_RE.match(email_norm):
        raise ValidationError("Invalid email address")
    return email_norm


def validate_password(password: str | None) -> str:
    pwd = password or ""
    if len(pwd) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(pwd.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError("Password is too long")
    return pwd


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    try:
        result = await db.execute(select(User).where(User.email == normalize_email(email)))
    except SQLAlchemyError as e:
        logger.exception("Failed to get user from database")
        raise StoreUnavailable("get_user_by_email") from e
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    try:
        return await db.get(User, user_id)
    except SQLAlchemyError as e:
        logger.exception("Failed to get user %s from database", user_id)
        raise StoreUnavailable("get_user_by_id") from e


async def create_user(db: AsyncSession, email: str, password: str) -> User:
    """Validate and create a user; Conflict if the email is taken."""
    email_norm = validate_email(email)
    pwd = validate_password(password)

    if await get_user_by_email(db, email_norm) is not None:
        raise Conflict("User already exists")

    user = User(email=email_norm, hashed_password=hash_password(pwd))
    db.add(user)
    try:
        await db.commit()
        await db.refresh(user)
    except IntegrityError as e:
        await db.rollback()
        raise Conflict("User already exists") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Failed to create user in database")
        raise StoreUnavailable("create_user") from e
    logger.info("Created user %s", user.id)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User | None:
    user = await get_user_by_email(db, email)
    if not user or not verify_password(password or "", user.hashed_password):
        return None
    return user
