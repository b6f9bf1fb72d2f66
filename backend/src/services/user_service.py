"""Service layer for reconciling verified emails with canonical user rows."""
import logging
from collections.abc import Callable

from sqlalchemy import Insert, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import PersistenceError
from core.providers import Provider
from models.user import User
from schemas.user import UserIdentity

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _dialect_insert(db: AsyncSession) -> Callable[..., Insert]:
    """Return the dialect-specific insert() that supports ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    try:
        return _UPSERT_DIALECTS[dialect]
    except KeyError:
        raise PersistenceError(f"Upsert not supported for dialect: {dialect}") from None


async def upsert_user(db: AsyncSession, email: str, provider: Provider) -> UserIdentity:
    """
    Return the user for `email`, creating it if absent.

    A single INSERT ... ON CONFLICT (email) DO UPDATE statement: concurrent
    first sign-ins for the same email resolve on the unique constraint, so one
    inserts and the rest update the same row. Only the provider tag (and
    updated_at) change on conflict; id is never touched.

    Raises:
        PersistenceError: The statement or commit failed.
    """
    insert = _dialect_insert(db)
    stmt = insert(User).values(email=email, provider_tag=provider.value)
    stmt = stmt.on_conflict_do_update(
        index_elements=[User.email],
        set_={
            "provider_tag": stmt.excluded.provider_tag,
            "updated_at": func.now(),
        },
    ).returning(User.id, User.email)

    try:
        row = (await db.execute(stmt)).one()
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            "user_upsert_failed",
            extra={"provider": provider.value, "error": type(e).__name__},
        )
        raise PersistenceError("Failed to upsert user") from e

    return UserIdentity(id=row.id, email=row.email)


async def get_user(db: AsyncSession, user_id: int) -> UserIdentity | None:
    """Look up a user by id."""
    try:
        row = (
            await db.execute(select(User.id, User.email).where(User.id == user_id))
        ).one_or_none()
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to load user") from e
    if row is None:
        return None
    return UserIdentity(id=row.id, email=row.email)
