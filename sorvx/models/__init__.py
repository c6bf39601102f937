from sorvx.models.user import User
from sorvx.models.chat import Chat

__all__ = ["User", "Chat"]
