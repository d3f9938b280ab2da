"""Shared column helpers for ORM models."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Enum


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def enum_type(enum_cls, *, name: str) -> Enum:
    """Store Python str-enums by value as portable VARCHAR columns."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        validate_strings=True,
        values_callable=lambda members: [member.value for member in members],
    )
