"""User model - one row per email that has signed in."""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Canonical local identity, keyed by email across all providers."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        comment="Email asserted by the identity provider - reconciliation key",
    )
    provider_tag: Mapped[str] = mapped_column(
        String(32),
        comment="Provider that most recently authenticated this email ('google' or 'apple')",
    )
