"""Single-use, time-boxed password reset tokens.

Per user the (reset_token, reset_token_expiry) pair moves through:

    NONE --issue--> OUTSTANDING --consume--> NONE
    OUTSTANDING --issue--> OUTSTANDING   (new token, the old one stops matching)
    OUTSTANDING --expiry passes--> EXPIRED (rejected until the next issue)

Consumption is one conditional UPDATE matched on the token value and a
still-valid expiry, so two concurrent requests with the same token cannot
both succeed.
"""
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Annotated

from fastapi import Depends
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sorvx.core.config import Settings, get_settings
from sorvx.core.errors import ExpiredToken, InvalidToken, StoreUnavailable
from sorvx.core.security import hash_password
from sorvx.db.session import get_db, utcnow
from sorvx.models.user import User
from sorvx.services.mailer import NotificationSender, get_notification_sender
from sorvx.services.users import get_user_by_email

logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(hours=1)


class PasswordResetService:
    def __init__(
        self,
        db: AsyncSession,
        sender: NotificationSender,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.sender = sender
        self.settings = settings or get_settings()
        self.clock = clock

    def reset_link(self, token: str) -> str:
        return f"{self.settings.app_url.rstrip('/')}/reset-password/{token}"

    async def issue(self, email: str) -> None:
        """Issue a token for the account with this email and send the link.

        Returns normally whether or not the account exists, so callers cannot
        tell the difference.
        """
        user = await get_user_by_email(self.db, email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return

        token = str(uuid.uuid4())
        expiry = self.clock() + RESET_TOKEN_TTL
        try:
            await self.db.execute(
                update(User)
                .where(User.id == user.id)
                .values(reset_token=token, reset_token_expiry=expiry)
                .execution_options(synchronize_session="evaluate")
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to create password reset token for user %s", user.id)
            raise StoreUnavailable("issue") from e
        logger.info("Issued password reset token for user %s, expires %s", user.id, expiry.isoformat())

        link = self.reset_link(token)
        try:
            sent = await self.sender.send(user.email, link)
        except Exception:
            logger.exception("Notification sender raised for user %s", user.id)
            sent = False
        if not sent:
            # Token stays valid; the operator can pass this link on by hand.
            logger.error("Failed to send password reset email for user %s; reset link: %s", user.id, link)

    async def consume(self, token: str, new_password: str) -> None:
        """Set a new password and clear the token in the same UPDATE.

        Raises InvalidToken when no user holds the token, ExpiredToken when
        the holder's expiry is missing or already past. The password policy is
        the caller's job (see services.users.validate_password).
        """
        if not token:
            raise InvalidToken("empty token")

        now = self.clock()
        hashed = hash_password(new_password)
        try:
            result = await self.db.execute(
                update(User)
                .where(
                    User.reset_token == token,
                    User.reset_token_expiry.is_not(None),
                    User.reset_token_expiry >= now,
                )
                .values(hashed_password=hashed, reset_token=None, reset_token_expiry=None)
                .execution_options(synchronize_session="evaluate")
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to reset password")
            raise StoreUnavailable("consume") from e

        if result.rowcount == 1:
            logger.info("Password reset completed")
            return

        # Nothing matched: tell apart unknown/used tokens from expired ones.
        try:
            holder = (
                await self.db.execute(select(User.id).where(User.reset_token == token))
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.exception("Failed to get user by reset token from database")
            raise StoreUnavailable("consume lookup") from e

        if holder is None:
            logger.warning("Password reset with invalid token")
            raise InvalidToken("no user holds this token")
        logger.warning("Password reset with expired token for user %s", holder)
        raise ExpiredToken(f"token of user {holder} expired")


def get_password_reset_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    sender: Annotated[NotificationSender, Depends(get_notification_sender)],
) -> PasswordResetService:
    return PasswordResetService(db, sender)
