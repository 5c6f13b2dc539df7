"""create_users_table

Revision ID: 3e8d5a1f7c21
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3e8d5a1f7c21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint("rating >= 100 AND rating <= 5000", name="ck_users_rating_range"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )

    op.create_index(op.f("ix_users_rating"), "users", ["rating"], unique=False)
    # Leaderboard pagination: ORDER BY rating DESC, username ASC
    op.create_index(
        "ix_users_rating_username",
        "users",
        [sa.text("rating DESC"), "username"],
        unique=False,
    )
    # Usernames are unique case-insensitively
    op.create_index("ix_users_username_lower", "users", [sa.text("lower(username)")], unique=True)


def downgrade() -> None:
    op.drop_index("ix_users_username_lower", table_name="users")
    op.drop_index("ix_users_rating_username", table_name="users")
    op.drop_index(op.f("ix_users_rating"), table_name="users")
    op.drop_table("users")
