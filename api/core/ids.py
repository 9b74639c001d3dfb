"""
Row identifiers: UUIDv7 (time-ordered), generated before the INSERT.
"""

from __future__ import annotations

import uuid6


def new_id() -> str:
    return str(uuid6.uuid7())
