# FILE: ipd_core/services/assignment_ledger.py
"""
Assignment Ledger: append-only history of bed occupancy.

A row is open while ``released_at`` is NULL. Per bed and per encounter at
most one open row may exist; no unique index backs that (MySQL has no
partial indexes), so ``create_assignment`` checks both sides itself and
relies on the caller holding the bed row lock. Rows are closed, never
deleted. Beds and encounters are not touched here.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ipd_core.models.ipd import IpdBedAssignment
from ipd_core.services.errors import ConflictError, NotFoundError
from ipd_core.utils.timezone import now_utc_naive

logger = logging.getLogger(__name__)


def find_open_assignment_for_encounter(
    db: Session,
    encounter_id: int,
    *,
    lock: bool = False,
) -> Optional[IpdBedAssignment]:
    q = db.query(IpdBedAssignment).filter(
        IpdBedAssignment.encounter_id == encounter_id,
        IpdBedAssignment.released_at.is_(None),
    )
    if lock:
        # locking read: sees rows committed after this transaction's snapshot
        q = q.populate_existing().with_for_update()
    return q.order_by(IpdBedAssignment.id.desc()).first()


def find_open_assignment_for_bed(
    db: Session,
    bed_id: int,
    *,
    lock: bool = False,
) -> Optional[IpdBedAssignment]:
    q = db.query(IpdBedAssignment).filter(
        IpdBedAssignment.bed_id == bed_id,
        IpdBedAssignment.released_at.is_(None),
    )
    if lock:
        q = q.populate_existing().with_for_update()
    return q.order_by(IpdBedAssignment.id.desc()).first()


def create_assignment(
    db: Session,
    encounter_id: int,
    bed_id: int,
    assigned_by: str,
    notes: str = "",
) -> IpdBedAssignment:
    held = find_open_assignment_for_bed(db, bed_id)
    if held:
        raise ConflictError(
            f"Bed {bed_id} already has an open assignment",
            details={"bed_id": bed_id, "assignment_id": held.id},
        )
    current = find_open_assignment_for_encounter(db, encounter_id)
    if current:
        raise ConflictError(
            f"Encounter {encounter_id} already has an open assignment",
            details={"encounter_id": encounter_id, "assignment_id": current.id},
        )

    row = IpdBedAssignment(
        encounter_id=encounter_id,
        bed_id=bed_id,
        assigned_at=now_utc_naive(),
        assigned_by=assigned_by,
        assignment_notes=notes or "",
    )
    db.add(row)
    db.flush()
    logger.debug("assignment %s opened: encounter=%s bed=%s", row.id, encounter_id, bed_id)
    return row


def release_assignment(
    db: Session,
    assignment_id: int,
    released_by: str,
    notes: str = "",
) -> IpdBedAssignment:
    row = (
        db.query(IpdBedAssignment)
        .filter(
            IpdBedAssignment.id == assignment_id,
            IpdBedAssignment.released_at.is_(None),
        )
        .first()
    )
    if not row:
        raise NotFoundError(
            f"No open assignment {assignment_id}",
            details={"assignment_id": assignment_id},
        )

    row.released_at = now_utc_naive()
    row.released_by = released_by
    row.release_notes = notes or "Bed released"
    db.flush()
    logger.debug("assignment %s released by %s", row.id, released_by)
    return row


def list_assignments_for_encounter(db: Session, encounter_id: int) -> List[IpdBedAssignment]:
    return (
        db.query(IpdBedAssignment)
        .filter(IpdBedAssignment.encounter_id == encounter_id)
        .order_by(IpdBedAssignment.assigned_at.asc(), IpdBedAssignment.id.asc())
        .all()
    )
