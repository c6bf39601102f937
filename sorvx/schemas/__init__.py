from sorvx.schemas.auth import CredentialsSchema, ForgotPasswordSchema, ResetPasswordSchema, UserOutSchema
from sorvx.schemas.chat import (
    Attachment,
    ChatMessage,
    ChatOutSchema,
    ChatSaveSchema,
    ChatSummarySchema,
    TextPart,
    ToolResultPart,
)

__all__ = [
    "Attachment",
    "ChatMessage",
    "ChatOutSchema",
    "ChatSaveSchema",
    "ChatSummarySchema",
    "CredentialsSchema",
    "ForgotPasswordSchema",
    "ResetPasswordSchema",
    "TextPart",
    "ToolResultPart",
    "UserOutSchema",
]
