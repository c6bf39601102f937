"""SQLAlchemy declarative base and model imports for Alembic."""
from sorvx.db.session import Base

# Import all models so Alembic can see them
from sorvx.models.chat import Chat  # noqa: F401
from sorvx.models.user import User  # noqa: F401

__all__ = ["Base", "User", "Chat"]
