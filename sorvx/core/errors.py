"""Error taxonomy shared by services and HTTP handlers.

Every error carries the HTTP status and the message that may be shown to the
end user. Details meant for operators go into the exception args and the log,
never into ``public_message``.
"""


class ChatbotError(Exception):
    status_code = 500
    public_message = "An error occurred while processing your request"


class ValidationError(ChatbotError):
    """Malformed input (email format, password length); nothing was written."""

    status_code = 400

    def __init__(self, public_message: str = "Invalid data", *args):
        super().__init__(public_message, *args)
        self.public_message = public_message


class ResetTokenError(ChatbotError):
    status_code = 400
    public_message = "Failed to reset password"


class InvalidToken(ResetTokenError):
    """No user holds this reset token (never issued, replaced or consumed)."""


class ExpiredToken(ResetTokenError):
    """The token is still on a user row but its expiry has passed."""


class Unauthorized(ChatbotError):
    status_code = 401
    public_message = "Unauthorized"


class NotFound(ChatbotError):
    status_code = 404
    public_message = "Not Found"


class Conflict(ChatbotError):
    status_code = 409

    def __init__(self, public_message: str, *args):
        super().__init__(public_message, *args)
        self.public_message = public_message


class StoreUnavailable(ChatbotError):
    status_code = 503
    public_message = "Service temporarily unavailable"
