# FILE: ipd_core/api/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Header

from ipd_core.core.config import settings
from ipd_core.db.session import get_db  # noqa: F401  re-exported for routes


def current_actor(x_actor: Optional[str] = Header(None, alias="X-Actor")) -> str:
    """Name recorded as assigned_by / released_by on ledger rows."""
    return (x_actor or "").strip()[:100] or settings.DEFAULT_ACTOR
