from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from uuid import uuid4


def now_utc() -> datetime:
    return datetime.now(UTC)


def make_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def stable_id(prefix: str, *parts: object) -> str:
    """Content-derived id: the same parts always map to the same id."""
    digest = hashlib.sha256("|".join(str(part) for part in parts).encode("utf-8")).hexdigest()
    return f"{prefix}_{digest[:12]}"
