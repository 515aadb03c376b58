"""User model and payload validation."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

RESERVED_FIELDS = ("user_id", "name", "created_at")


class UserValidationError(ValueError):
    """Raised when a create-user payload is unusable."""


@dataclass
class User:
    user_id: str
    name: str
    created_at: str  # UTC ISO-8601
    attributes: dict[str, Any] = field(default_factory=dict)  # any other submitted fields

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.attributes,
            "user_id": self.user_id,
            "name": self.name,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, item: dict[str, Any]) -> "User":
        """Rebuild a user from its flat stored form."""
        return cls(
            user_id=item["user_id"],
            name=item["name"],
            created_at=item.get("created_at", ""),
            attributes={k: v for k, v in item.items() if k not in RESERVED_FIELDS},
        )


def new_user(payload: Any) -> User:
    """Build a fresh user from a decoded request body.

    `name` is required; every other key except the reserved ones is kept
    as an attribute. Server-assigned fields in the payload are ignored.
    """
    if not isinstance(payload, dict):
        raise UserValidationError("Request body must be an object")

    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise UserValidationError("Field 'name' is required")

    return User(
        user_id=uuid.uuid4().hex,
        name=name.strip(),
        created_at=datetime.now(timezone.utc).isoformat(),
        attributes={k: v for k, v in payload.items() if k not in RESERVED_FIELDS},
    )
