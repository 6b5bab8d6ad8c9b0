"""Requester identity and the storage prefix it publishes under."""

import re
import secrets
from dataclasses import dataclass
from typing import Optional

from rescribe.exceptions import InputValidationError

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


@dataclass(frozen=True)
class Identity:
    """
    Who a compiled PDF belongs to.

    Authenticated users publish under users/<id>/, anonymous sessions under
    guests/<session>/, so a guest can never overwrite a user's artifact.

    Attributes:
        kind: "user" or "guest"
        id: User id or guest session id ([A-Za-z0-9_-]+)
    """

    kind: str
    id: str

    def __post_init__(self):
        if self.kind not in ("user", "guest"):
            raise ValueError(f"Unknown identity kind: {self.kind}")
        if not IDENTIFIER_PATTERN.fullmatch(self.id or ""):
            raise InputValidationError(
                "Invalid identity",
                details=f"Identifier must match [A-Za-z0-9_-]+, got {self.id!r}",
            )

    @classmethod
    def user(cls, user_id: str) -> "Identity":
        return cls(kind="user", id=user_id)

    @classmethod
    def guest(cls, session_id: Optional[str] = None) -> "Identity":
        """Guest identity; a random session id is generated when none is given."""
        return cls(kind="guest", id=session_id or secrets.token_hex(8))

    @property
    def storage_prefix(self) -> str:
        """Folder that holds this identity's artifacts (e.g., users/user123)."""
        folder = "users" if self.kind == "user" else "guests"
        return f"{folder}/{self.id}"

    def __str__(self) -> str:
        return self.storage_prefix
