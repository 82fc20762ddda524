# FILE: ipd_core/services/bed_registry.py
"""
Bed Registry: the cached availability flag of each bed.

``status`` mirrors the assignment ledger so bed lists never have to scan
it. ``lock_bed`` is the row-lock primitive; nothing here keeps the cache
in step with the ledger. Only the orchestrator calls ``set_status``, inside
the same transaction that writes the ledger row, holding the bed row lock.
"""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from ipd_core.models.ipd import (
    IpdBed,
    IpdWard,
    BED_STATUSES,
    BED_OCCUPIED,
    BED_AVAILABLE,
    BED_TYPES,
)
from ipd_core.services.errors import NotFoundError, ValidationError
from ipd_core.utils.timezone import now_utc_naive

_BED_TYPE_ALIASES = {
    "PRIVATE": "private",
    "VIP": "private",
    "ICU": "icu",
    "INTENSIVE": "icu",
    "PEDIATRIC": "pediatric",
    "PAEDIATRIC": "pediatric",
}


def normalize_bed_type(raw: Optional[str]) -> str:
    """Map free-text bed types onto BED_TYPES; anything unrecognised is general."""
    key = (raw or "").strip()
    if key.lower() in BED_TYPES:
        return key.lower()
    return _BED_TYPE_ALIASES.get(key.upper(), "general")


def get_bed(db: Session, bed_id: int) -> IpdBed:
    bed = (
        db.query(IpdBed)
        .options(joinedload(IpdBed.ward))
        .filter(IpdBed.id == bed_id)
        .first()
    )
    if not bed:
        raise NotFoundError(f"Bed {bed_id} not found", details={"bed_id": bed_id})
    return bed


def lock_bed(db: Session, bed_id: int) -> IpdBed:
    """SELECT ... FOR UPDATE on one bed row; held until the transaction ends."""
    bed = (
        db.query(IpdBed)
        .filter(IpdBed.id == bed_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if not bed:
        raise NotFoundError(f"Bed {bed_id} not found", details={"bed_id": bed_id})
    return bed


def set_status(db: Session, bed: IpdBed, status: str) -> IpdBed:
    if status not in BED_STATUSES:
        raise ValidationError(
            f"Unknown bed status: {status}",
            field_errors={"status": [f"must be one of {', '.join(BED_STATUSES)}"]},
        )

    now = now_utc_naive()
    if status == BED_OCCUPIED and bed.status != BED_OCCUPIED:
        bed.last_occupied_at = now
    bed.status = status
    bed.updated_at = now
    db.flush()
    return bed


def list_beds(
    db: Session,
    *,
    ward_id: Optional[int] = None,
    status: Optional[str] = None,
) -> List[IpdBed]:
    q = (
        db.query(IpdBed)
        .join(IpdWard, IpdWard.id == IpdBed.ward_id)
        .options(joinedload(IpdBed.ward))
    )
    if ward_id:
        q = q.filter(IpdBed.ward_id == ward_id)
    if status:
        q = q.filter(IpdBed.status == status)
    return q.order_by(IpdWard.name.asc(), IpdBed.bed_number.asc()).all()


def list_available_beds(db: Session, *, ward_id: Optional[int] = None) -> List[IpdBed]:
    return list_beds(db, ward_id=ward_id, status=BED_AVAILABLE)
