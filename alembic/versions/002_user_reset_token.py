"""Add password reset token pair to users.

Revision ID: 002
Revises: 001
Create Date: 2025-04-12

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # batch mode so SQLite can add the unique index alongside the columns
    with op.batch_alter_table("users") as batch_op:
        batch_op.add_column(sa.Column("reset_token", sa.String(64), nullable=True))
        batch_op.add_column(sa.Column("reset_token_expiry", sa.DateTime(), nullable=True))
        batch_op.create_index(op.f("ix_users_reset_token"), ["reset_token"], unique=True)


def downgrade() -> None:
    with op.batch_alter_table("users") as batch_op:
        batch_op.drop_index(op.f("ix_users_reset_token"))
        batch_op.drop_column("reset_token_expiry")
        batch_op.drop_column("reset_token")
