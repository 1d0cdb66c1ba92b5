"""Temporary identifiers for records created before the remote store knows them."""
from __future__ import annotations

import secrets
import string
import time
from typing import Optional


LOCAL_PREFIX = "local_"
_ALPHABET = string.ascii_lowercase + string.digits
_SUFFIX_LEN = 9


def new_local_id(now_ms: Optional[int] = None) -> str:
    """Return ``local_<epoch millis>_<random base36 suffix>``."""

    millis = int(time.time() * 1000) if now_ms is None else int(now_ms)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(_SUFFIX_LEN))
    return f"{LOCAL_PREFIX}{millis}_{suffix}"


def is_local_id(value: Optional[str]) -> bool:
    return bool(value) and str(value).startswith(LOCAL_PREFIX)


def local_id_millis(value: str) -> Optional[int]:
    """Creation time embedded in a LocalId, usable as a sort key."""

    if not is_local_id(value):
        return None
    head = value[len(LOCAL_PREFIX):].split("_", 1)[0]
    try:
        return int(head)
    except ValueError:
        return None


__all__ = ["LOCAL_PREFIX", "is_local_id", "local_id_millis", "new_local_id"]
