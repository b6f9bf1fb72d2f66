"""
Add users table.

Revision ID: a1f3c9e2d4b7
Revises:
Create Date: 2025-11-02 14:21:07.318204

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = 'a1f3c9e2d4b7'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'email',
            sa.String(length=255),
            nullable=False,
            comment='Email asserted by the identity provider - reconciliation key',
        ),
        sa.Column(
            'provider_tag',
            sa.String(length=32),
            nullable=False,
            comment="Provider that most recently authenticated this email ('google' or 'apple')",
        ),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
        ),
    )
    # Unique index backs ON CONFLICT (email) in the sign-in upsert
    op.create_index('ix_users_email', 'users', ['email'], unique=True)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
