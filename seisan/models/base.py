"""Column helpers shared by the models."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Type

from seisan import db


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what SQLite hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def enum_column(enum_cls: Type[enum.Enum], name: str) -> db.Enum:
    """Store the lowercase enum values rather than member names."""
    return db.Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )
