"""Identifier and timestamp helpers."""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone

ID_ALPHABET = string.ascii_letters + string.digits + "_-"
ID_LENGTH = 8


def generate_id(size: int = ID_LENGTH) -> str:
    """Return a short URL-safe random identifier (e.g. ``V1StGXR8``)."""

    return "".join(secrets.choice(ID_ALPHABET) for _ in range(size))


def current_timestamp(now: datetime | None = None) -> str:
    """Return an ISO-8601 UTC timestamp such as ``2025-11-17T10:30:00.000Z``.

    The fixed width and ``Z`` suffix keep lexicographic order equal to
    chronological order.
    """

    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = ["ID_ALPHABET", "ID_LENGTH", "current_timestamp", "generate_id"]
