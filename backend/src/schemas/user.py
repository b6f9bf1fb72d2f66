"""Lightweight user representation shared by the sign-in pipeline."""
from dataclasses import dataclass


@dataclass(frozen=True)
class UserIdentity:
    """
    Canonical user as returned by the upsert.

    Carries only the fields needed to issue a session - avoids handing ORM
    instances across the sign-in pipeline.
    """

    id: int
    email: str
