"""ID helpers."""

from __future__ import annotations

import secrets

from refine_page.utils.time import now_ms

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def new_snapshot_id() -> str:
    """Return ``snapshot_<epoch-ms>_<9 base-36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"snapshot_{now_ms()}_{suffix}"


__all__ = ["new_snapshot_id"]
