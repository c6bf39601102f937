"""Chat routes: save, fetch, delete, history. All need a logged-in user."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from sorvx.core.errors import NotFound
from sorvx.db.session import get_db
from sorvx.models.user import User
from sorvx.routers.auth import get_current_user
from sorvx.schemas.chat import ChatOutSchema, ChatSaveSchema, ChatSummarySchema
from sorvx.services.chats import (
    chat_messages,
    chat_title,
    delete_owned_chat,
    get_chats_by_user_id,
    get_owned_chat,
    save_owned_chat,
)

router = APIRouter(prefix="/api", tags=["chat"])


@router.post("/chat")
async def save_chat(
    body: ChatSaveSchema,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Store the full message list of a chat (creates it on first save)."""
    await save_owned_chat(db, body.id, body.messages, current_user.id)
    return {"id": body.id, "saved": True}


@router.get("/chat/{chat_id}", response_model=ChatOutSchema)
async def get_chat(
    chat_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    chat = await get_owned_chat(db, chat_id, current_user.id)
    return ChatOutSchema(
        id=chat.id,
        user_id=chat.user_id,
        created_at=chat.created_at,
        messages=chat_messages(chat),
    )


@router.delete("/chat")
async def delete_chat(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    id: str | None = None,
):
    if not id:
        raise NotFound("missing chat id")
    await delete_owned_chat(db, id, current_user.id)
    return {"message": "Chat deleted"}


@router.get("/history", response_model=list[ChatSummarySchema])
async def history(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Chats of the current user, newest first."""
    chats = await get_chats_by_user_id(db, current_user.id)
    return [
        ChatSummarySchema(id=c.id, created_at=c.created_at, title=chat_title(c))
        for c in chats
    ]
