# Overview: Primary key generation for persisted entities.

from __future__ import annotations

import secrets
import time


def new_id(prefix: str) -> str:
    """
    Generate a string primary key of the form ``{PREFIX}-{millis}-{random}``.

    Keys sort roughly by creation time, and the random suffix keeps two rows
    created in the same millisecond apart.
    """
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"
