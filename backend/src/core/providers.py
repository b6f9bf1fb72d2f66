"""Supported identity providers."""
from enum import Enum


class Provider(Enum):
    """Identity provider a sign-in request claims to come from."""

    GOOGLE = "google"
    APPLE = "apple"

    @property
    def label(self) -> str:
        """Human-readable provider name used in error responses."""
        return self.value.capitalize()
