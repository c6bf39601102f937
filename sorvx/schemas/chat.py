"""Pydantic schemas for chats and their messages.

Message content is either a plain string or a list of tagged parts, so a
stored chat can be parsed back into exactly the shape it was saved with.
"""
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResultPart(BaseModel):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    result: Any = None


ContentPart = Annotated[Union[TextPart, ToolResultPart], Field(discriminator="type")]


class Attachment(BaseModel):
    url: str
    name: str | None = None
    content_type: str | None = None


class ChatMessage(BaseModel):
    id: str | None = None
    role: Literal["system", "user", "assistant", "tool"]
    content: str | list[ContentPart]
    attachments: list[Attachment] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated text of the message, tool results left out."""
        if isinstance(self.content, str):
            return self.content
        return "".join(p.text for p in self.content if isinstance(p, TextPart))


messages_adapter = TypeAdapter(list[ChatMessage])


def dump_messages(messages: list[ChatMessage]) -> str:
    return messages_adapter.dump_json(messages).decode("utf-8")


def load_messages(raw: str) -> list[ChatMessage]:
    return messages_adapter.validate_json(raw)


class ChatSaveSchema(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    messages: list[ChatMessage]


class ChatOutSchema(BaseModel):
    id: str
    user_id: int
    created_at: datetime
    messages: list[ChatMessage]


class ChatSummarySchema(BaseModel):
    id: str
    created_at: datetime
    title: str
