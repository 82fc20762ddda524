# FILE: ipd_core/services/errors.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import OperationalError


class IpdError(RuntimeError):
    """
    Base for every failure the bed / encounter services raise on purpose.

    ``code`` is a stable machine-readable tag, ``status_code`` the HTTP
    status the API layer answers with, ``details`` extra context for the
    caller (field errors, ids).
    """
    code = "IPD_ERROR"
    status_code = 400

    def __init__(self, msg: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(msg)
        self.msg = msg
        self.details = details or {}


class ValidationError(IpdError):
    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(
        self,
        msg: str = "Validation failed",
        *,
        field_errors: Optional[Dict[str, List[str]]] = None,
    ):
        super().__init__(msg, details={"field_errors": field_errors} if field_errors else None)
        self.field_errors = field_errors or {}


class NotFoundError(IpdError):
    code = "NOT_FOUND"
    status_code = 404


class BedUnavailableError(IpdError):
    code = "BED_UNAVAILABLE"
    status_code = 409

    def __init__(self, bed_id: int, status: Optional[str] = None):
        msg = f"Bed {bed_id} is not available"
        if status:
            msg += f" ({status})"
        super().__init__(msg, details={"bed_id": bed_id, "bed_status": status})
        self.bed_id = bed_id
        self.bed_status = status


class ConflictError(IpdError):
    code = "CONFLICT"
    status_code = 409


class InvalidStateError(IpdError):
    code = "INVALID_STATE"
    status_code = 409


class LockTimeoutError(IpdError):
    """Lock wait exceeded. Safe for the caller to retry with backoff."""
    code = "LOCK_TIMEOUT"
    status_code = 503


# MySQL 1205 lock wait timeout, 1213 deadlock; PostgreSQL 55P03 lock_not_available
_MYSQL_LOCK_CODES = {1205, 1213}
_PG_LOCK_CODES = {"55P03", "40P01"}


def is_lock_timeout(exc: OperationalError) -> bool:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return False

    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in _PG_LOCK_CODES:
        return True

    args = getattr(orig, "args", ()) or ()
    if args and isinstance(args[0], int) and args[0] in _MYSQL_LOCK_CODES:
        return True

    # sqlite busy timeout
    return "database is locked" in str(orig).lower()
