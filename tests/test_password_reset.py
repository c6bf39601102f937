"""
Tests for password reset token issuance and consumption
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from sorvx.core.errors import ExpiredToken, InvalidToken
from sorvx.core.security import verify_password
from sorvx.models.user import User
from sorvx.services.password_reset import RESET_TOKEN_TTL, PasswordResetService


class Clock:
    def __init__(self):
        self.now = datetime(2025, 4, 5, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def service(db_session, sender, clock):
    return PasswordResetService(db_session, sender, clock=clock)


async def load_user(session_maker, user_id) -> User:
    async with session_maker() as s:
        return await s.get(User, user_id)


async def token_of(session_maker, user_id) -> str:
    return (await load_user(session_maker, user_id)).reset_token


# ============ issue ============

@pytest.mark.asyncio
async def test_issue_unknown_email_mutates_nothing(service, sender, alice, session_maker):
    """Unknown email: success, no row touched, nothing sent"""
    await service.issue("nobody@example.com")

    async with session_maker() as s:
        rows = (await s.execute(select(User).where(User.reset_token.is_not(None)))).scalars().all()
    assert rows == []
    assert sender.sent == []


@pytest.mark.asyncio
async def test_issue_sets_token_and_expiry_together(service, sender, clock, alice, session_maker):
    await service.issue("alice@example.com")

    user = await load_user(session_maker, alice.id)
    assert user.reset_token is not None
    assert user.reset_token_expiry == clock.now + RESET_TOKEN_TTL
    assert len(user.reset_token) == 36  # uuid4

    assert sender.sent == [("alice@example.com", f"http://localhost:3000/reset-password/{user.reset_token}")]


@pytest.mark.asyncio
async def test_issue_matches_email_case_insensitively(service, sender, alice, session_maker):
    await service.issue("  Alice@Example.COM ")
    assert await token_of(session_maker, alice.id) is not None
    assert len(sender.sent) == 1


@pytest.mark.asyncio
async def test_issue_survives_failed_notification(db_session, clock, alice, session_maker):
    """Sender failure is logged; the token is still issued"""
    from conftest import FakeSender

    failing = FakeSender(result=False)
    await PasswordResetService(db_session, failing, clock=clock).issue("alice@example.com")

    assert len(failing.sent) == 1
    assert await token_of(session_maker, alice.id) is not None


@pytest.mark.asyncio
async def test_issue_survives_sender_exception(db_session, clock, alice, session_maker):
    class Exploding:
        async def send(self, email, reset_link):
            raise ConnectionRefusedError("smtp down")

    await PasswordResetService(db_session, Exploding(), clock=clock).issue("alice@example.com")
    assert await token_of(session_maker, alice.id) is not None


# ============ consume ============

@pytest.mark.asyncio
async def test_consume_sets_password_and_clears_token(service, alice, session_maker):
    await service.issue("alice@example.com")
    token = await token_of(session_maker, alice.id)

    await service.consume(token, "new-password")

    user = await load_user(session_maker, alice.id)
    assert user.reset_token is None
    assert user.reset_token_expiry is None
    assert verify_password("new-password", user.hashed_password)
    assert not verify_password("old-password", user.hashed_password)


@pytest.mark.asyncio
async def test_consume_twice_fails_second_time(service, alice, session_maker):
    await service.issue("alice@example.com")
    token = await token_of(session_maker, alice.id)

    await service.consume(token, "new-password")
    with pytest.raises(InvalidToken):
        await service.consume(token, "other-password")

    user = await load_user(session_maker, alice.id)
    assert verify_password("new-password", user.hashed_password)


@pytest.mark.asyncio
async def test_consume_unknown_token(service, alice):
    with pytest.raises(InvalidToken):
        await service.consume("3f1c1e9e-0000-4000-8000-000000000000", "new-password")
    with pytest.raises(InvalidToken):
        await service.consume("", "new-password")


@pytest.mark.asyncio
async def test_expired_token_always_rejected(service, clock, alice, session_maker):
    await service.issue("alice@example.com")
    token = await token_of(session_maker, alice.id)

    clock.advance(hours=1, seconds=1)
    with pytest.raises(ExpiredToken):
        await service.consume(token, "new-password")
    # still rejected, and the password is unchanged
    with pytest.raises(ExpiredToken):
        await service.consume(token, "new-password")

    user = await load_user(session_maker, alice.id)
    assert verify_password("old-password", user.hashed_password)


@pytest.mark.asyncio
async def test_token_valid_until_expiry(service, clock, alice, session_maker):
    await service.issue("alice@example.com")
    token = await token_of(session_maker, alice.id)

    clock.advance(minutes=59)
    await service.consume(token, "new-password")


@pytest.mark.asyncio
async def test_reissue_invalidates_previous_token(service, sender, alice, session_maker):
    await service.issue("alice@example.com")
    first = await token_of(session_maker, alice.id)
    await service.issue("alice@example.com")
    second = await token_of(session_maker, alice.id)

    assert first != second
    assert len(sender.sent) == 2
    with pytest.raises(InvalidToken):
        await service.consume(first, "new-password")
    await service.consume(second, "new-password")


@pytest.mark.asyncio
async def test_reissue_after_expiry_gives_fresh_token(service, clock, alice, session_maker):
    await service.issue("alice@example.com")
    clock.advance(hours=2)
    await service.issue("alice@example.com")
    token = await token_of(session_maker, alice.id)

    await service.consume(token, "new-password")


@pytest.mark.asyncio
async def test_consume_does_not_trust_earlier_reads(sender, clock, alice, session_maker):
    """A request that read the row before another one consumed it still loses"""
    async with session_maker() as s:
        await PasswordResetService(s, sender, clock=clock).issue("alice@example.com")

    async with session_maker() as late, session_maker() as early:
        late_service = PasswordResetService(late, sender, clock=clock)
        early_service = PasswordResetService(early, sender, clock=clock)

        # the late request has already looked the user up and seen the token
        seen = (await late.execute(select(User).where(User.id == alice.id))).scalar_one()
        token = seen.reset_token
        assert token is not None

        await early_service.consume(token, "first-password")
        with pytest.raises(InvalidToken):
            await late_service.consume(token, "second-password")

    user = await load_user(session_maker, alice.id)
    assert verify_password("first-password", user.hashed_password)
