"""Chat persistence: whole-array saves, lookups, owner-checked access."""
import logging

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sorvx.core.errors import NotFound, StoreUnavailable, Unauthorized
from sorvx.models.chat import Chat
from sorvx.schemas.chat import ChatMessage, dump_messages, load_messages
from sorvx.db.session import utcnow

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 60


# An insert that loses the race for a new id is retried as an update once.
SAVE_ATTEMPTS = 2


async def _write_chat(db: AsyncSession, id: str, payload: str, user_id: int, owner_only: bool) -> None:
    conditions = [Chat.id == id]
    if owner_only:
        conditions.append(Chat.user_id == user_id)

    for _ in range(SAVE_ATTEMPTS):
        try:
            result = await db.execute(
                update(Chat)
                .where(*conditions)
                .values(messages=payload)
                .execution_options(synchronize_session="evaluate")
            )
            if result.rowcount == 0:
                await db.execute(
                    insert(Chat).values(id=id, user_id=user_id, created_at=utcnow(), messages=payload)
                )
            await db.commit()
            return
        except IntegrityError:
            # Another request created this id between our UPDATE and INSERT.
            await db.rollback()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception("Failed to save chat %s in database", id)
            raise StoreUnavailable("save_chat") from e

        if owner_only:
            owner = await _chat_owner(db, id)
            if owner is not None and owner != user_id:
                logger.warning("User %s tried to overwrite chat %s of user %s", user_id, id, owner)
                raise Unauthorized(f"chat {id}")
        logger.info("Chat %s was created concurrently, saving again", id)

    logger.error("Gave up saving chat %s after %s attempts", id, SAVE_ATTEMPTS)
    raise StoreUnavailable("save_chat retries")


async def _chat_owner(db: AsyncSession, id: str) -> int | None:
    try:
        result = await db.execute(select(Chat.user_id).where(Chat.id == id))
    except SQLAlchemyError as e:
        logger.exception("Failed to get owner of chat %s from database", id)
        raise StoreUnavailable("chat owner") from e
    return result.scalar_one_or_none()


async def save_chat(db: AsyncSession, id: str, messages: list[ChatMessage], user_id: int) -> None:
    """Overwrite the messages of chat `id`, or create it for `user_id`.

    Last writer wins, also when two saves race to create the same id;
    created_at and user_id of an existing row are kept. No ownership check
    here, see save_owned_chat.
    """
    await _write_chat(db, id, dump_messages(messages), user_id, owner_only=False)


async def get_chat_by_id(db: AsyncSession, id: str) -> Chat | None:
    try:
        result = await db.execute(select(Chat).where(Chat.id == id))
    except SQLAlchemyError as e:
        logger.exception("Failed to get chat %s by id from database", id)
        raise StoreUnavailable("get_chat_by_id") from e
    return result.scalar_one_or_none()


async def delete_chat_by_id(db: AsyncSession, id: str) -> None:
    try:
        await db.execute(delete(Chat).where(Chat.id == id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Failed to delete chat %s by id from database", id)
        raise StoreUnavailable("delete_chat_by_id") from e


async def get_chats_by_user_id(db: AsyncSession, user_id: int) -> list[Chat]:
    """Chats of a user, newest first."""
    try:
        result = await db.execute(
            select(Chat).where(Chat.user_id == user_id).order_by(Chat.created_at.desc())
        )
    except SQLAlchemyError as e:
        logger.exception("Failed to get chats by user %s from database", user_id)
        raise StoreUnavailable("get_chats_by_user_id") from e
    return list(result.scalars().all())


async def get_owned_chat(db: AsyncSession, id: str, user_id: int) -> Chat:
    chat = await get_chat_by_id(db, id)
    if chat is None:
        raise NotFound(f"chat {id}")
    if chat.user_id != user_id:
        logger.warning("User %s tried to access chat %s of user %s", user_id, id, chat.user_id)
        raise Unauthorized(f"chat {id}")
    return chat


async def delete_owned_chat(db: AsyncSession, id: str, user_id: int) -> None:
    """Delete a chat only if `user_id` owns it; otherwise the row is untouched."""
    await get_owned_chat(db, id, user_id)
    await delete_chat_by_id(db, id)
    logger.info("Deleted chat %s", id)


async def save_owned_chat(db: AsyncSession, id: str, messages: list[ChatMessage], user_id: int) -> None:
    """Save for the session user; refuses to overwrite someone else's chat.

    The owner is part of the UPDATE itself, so a chat created by another
    user at any point during the save is never written to.
    """
    await _write_chat(db, id, dump_messages(messages), user_id, owner_only=True)


def chat_messages(chat: Chat) -> list[ChatMessage]:
    return load_messages(chat.messages)


def chat_title(chat: Chat) -> str:
    """First user message, trimmed, as the history title."""
    for message in chat_messages(chat):
        if message.role == "user" and message.text.strip():
            title = " ".join(message.text.split())
            if len(title) > TITLE_MAX_LENGTH:
                title = title[: TITLE_MAX_LENGTH - 1] + "…"
            return title
    return "New chat"
