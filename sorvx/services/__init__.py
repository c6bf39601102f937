from sorvx.services.chats import delete_owned_chat, get_chats_by_user_id, get_owned_chat, save_chat
from sorvx.services.password_reset import PasswordResetService
from sorvx.services.users import create_user, validate_email, validate_password

__all__ = [
    "PasswordResetService",
    "create_user",
    "delete_owned_chat",
    "get_chats_by_user_id",
    "get_owned_chat",
    "save_chat",
    "validate_email",
    "validate_password",
]
