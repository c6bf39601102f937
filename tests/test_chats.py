"""
Tests for chat persistence and owner checks
"""
from datetime import datetime

import pytest
from sqlalchemy import Insert, update

from sorvx.core.errors import NotFound, Unauthorized
from sorvx.db.session import utcnow
from sorvx.models.chat import Chat
from sorvx.schemas.chat import ChatMessage, TextPart, ToolResultPart, load_messages
from sorvx.services.chats import (
    chat_messages,
    chat_title,
    delete_owned_chat,
    get_chat_by_id,
    get_chats_by_user_id,
    get_owned_chat,
    save_chat,
    save_owned_chat,
)

CHAT_ID = "9b2f6c1e-5d0a-4c7e-9a51-3f8e2d1b7c40"


def conversation(*texts: str) -> list[ChatMessage]:
    roles = ["user", "assistant"]
    return [ChatMessage(id=f"m{i}", role=roles[i % 2], content=t) for i, t in enumerate(texts)]


async def fetch(session_maker, chat_id) -> Chat | None:
    async with session_maker() as s:
        return await s.get(Chat, chat_id)


@pytest.mark.asyncio
async def test_save_new_chat_creates_row(db_session, alice, session_maker):
    before = utcnow()
    await save_chat(db_session, CHAT_ID, conversation("hi", "hello!"), alice.id)
    after = utcnow()

    chat = await fetch(session_maker, CHAT_ID)
    assert chat.user_id == alice.id
    assert before <= chat.created_at <= after
    assert [m.content for m in chat_messages(chat)] == ["hi", "hello!"]


@pytest.mark.asyncio
async def test_save_existing_chat_overwrites_and_keeps_created_at(db_session, alice, session_maker):
    await save_chat(db_session, CHAT_ID, conversation("hi", "hello!"), alice.id)
    created_at = (await fetch(session_maker, CHAT_ID)).created_at

    await save_chat(db_session, CHAT_ID, conversation("hi", "hello!", "how are you?", "great"), alice.id)

    chat = await fetch(session_maker, CHAT_ID)
    assert chat.created_at == created_at
    assert len(chat_messages(chat)) == 4
    # the in-session copy is not stale either
    chat = await get_chat_by_id(db_session, CHAT_ID)
    assert len(chat_messages(chat)) == 4


@pytest.mark.asyncio
async def test_tagged_message_parts_survive_storage(db_session, alice, session_maker):
    messages = [
        ChatMessage(id="u1", role="user", content="weather in Kathmandu?"),
        ChatMessage(
            id="a1",
            role="assistant",
            content=[
                TextPart(text="Checking. "),
                ToolResultPart(tool_call_id="call-1", tool_name="getWeather", result={"temp_c": 21, "sky": ["clear"]}),
                TextPart(text="It is 21°C."),
            ],
        ),
    ]
    await save_chat(db_session, CHAT_ID, messages, alice.id)

    loaded = chat_messages(await fetch(session_maker, CHAT_ID))
    assert loaded == messages
    assert isinstance(loaded[1].content[1], ToolResultPart)
    assert loaded[1].text == "Checking. It is 21°C."


def test_load_messages_rejects_unknown_part_type():
    with pytest.raises(ValueError):
        load_messages('[{"role": "assistant", "content": [{"type": "image", "url": "x"}]}]')


@pytest.mark.asyncio
async def test_list_by_user_newest_first(db_session, alice, bob):
    await save_chat(db_session, "a-old", conversation("first"), alice.id)
    await save_chat(db_session, "b-chat", conversation("bob here"), bob.id)
    await save_chat(db_session, "a-new", conversation("second"), alice.id)
    for chat_id, day in [("a-old", 1), ("b-chat", 2), ("a-new", 3)]:
        await db_session.execute(
            update(Chat).where(Chat.id == chat_id).values(created_at=datetime(2025, 4, day))
        )
    await db_session.commit()

    chats = await get_chats_by_user_id(db_session, alice.id)
    assert [c.id for c in chats] == ["a-new", "a-old"]


@pytest.mark.asyncio
async def test_delete_by_non_owner_is_refused(db_session, alice, bob, session_maker):
    await save_chat(db_session, CHAT_ID, conversation("secret"), alice.id)

    with pytest.raises(Unauthorized):
        await delete_owned_chat(db_session, CHAT_ID, bob.id)

    chat = await fetch(session_maker, CHAT_ID)
    assert chat is not None
    assert chat.user_id == alice.id
    assert [m.content for m in chat_messages(chat)] == ["secret"]


@pytest.mark.asyncio
async def test_delete_by_owner(db_session, alice, session_maker):
    await save_chat(db_session, CHAT_ID, conversation("bye"), alice.id)
    await delete_owned_chat(db_session, CHAT_ID, alice.id)
    assert await fetch(session_maker, CHAT_ID) is None


@pytest.mark.asyncio
async def test_missing_chat_is_not_found(db_session, alice):
    with pytest.raises(NotFound):
        await get_owned_chat(db_session, "missing", alice.id)
    with pytest.raises(NotFound):
        await delete_owned_chat(db_session, "missing", alice.id)


@pytest.mark.asyncio
async def test_save_owned_refuses_foreign_chat(db_session, alice, bob, session_maker):
    await save_chat(db_session, CHAT_ID, conversation("mine"), alice.id)

    with pytest.raises(Unauthorized):
        await save_owned_chat(db_session, CHAT_ID, conversation("hijack"), bob.id)

    chat = await fetch(session_maker, CHAT_ID)
    assert [m.content for m in chat_messages(chat)] == ["mine"]


@pytest.mark.asyncio
async def test_chat_title_from_first_user_message(db_session, alice):
    await save_chat(db_session, CHAT_ID, conversation("  How do I\nreverse a list?  ", "Use reversed()."), alice.id)
    chat = await get_chat_by_id(db_session, CHAT_ID)
    assert chat_title(chat) == "How do I reverse a list?"

    await save_chat(db_session, "long", conversation("x" * 100), alice.id)
    title = chat_title(await get_chat_by_id(db_session, "long"))
    assert len(title) == 60
    assert title.endswith("…")


def run_before_first_insert(monkeypatch, session, action):
    """Run `action` between the UPDATE and the INSERT of `session`, like a request that slipped in."""
    execute = session.execute
    fired = []

    async def racing_execute(statement, *args, **kwargs):
        if isinstance(statement, Insert) and not fired:
            fired.append(True)
            await action()
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(session, "execute", racing_execute)


@pytest.mark.asyncio
async def test_owned_save_loses_to_chat_created_meanwhile(monkeypatch, session_maker, alice, bob):
    """Another user creates the id between our UPDATE and INSERT: refused, their row intact"""

    async def alice_creates():
        async with session_maker() as s:
            await save_owned_chat(s, CHAT_ID, conversation("alice-secret"), alice.id)

    async with session_maker() as s:
        run_before_first_insert(monkeypatch, s, alice_creates)
        with pytest.raises(Unauthorized):
            await save_owned_chat(s, CHAT_ID, conversation("bob-overwrite"), bob.id)

    chat = await fetch(session_maker, CHAT_ID)
    assert chat.user_id == alice.id
    assert [m.content for m in chat_messages(chat)] == ["alice-secret"]


@pytest.mark.asyncio
async def test_concurrent_first_saves_last_writer_wins(monkeypatch, session_maker, alice):
    async def first_save():
        async with session_maker() as s:
            await save_chat(s, CHAT_ID, conversation("from tab one"), alice.id)

    async with session_maker() as s:
        run_before_first_insert(monkeypatch, s, first_save)
        await save_chat(s, CHAT_ID, conversation("from tab two"), alice.id)

    chat = await fetch(session_maker, CHAT_ID)
    assert chat.user_id == alice.id
    assert [m.content for m in chat_messages(chat)] == ["from tab two"]


@pytest.mark.asyncio
async def test_owner_racing_itself_still_saves(monkeypatch, session_maker, alice):
    async def other_tab():
        async with session_maker() as s:
            await save_owned_chat(s, CHAT_ID, conversation("other tab"), alice.id)

    async with session_maker() as s:
        run_before_first_insert(monkeypatch, s, other_tab)
        await save_owned_chat(s, CHAT_ID, conversation("this tab"), alice.id)

    chat = await fetch(session_maker, CHAT_ID)
    assert [m.content for m in chat_messages(chat)] == ["this tab"]

