# FILE: ipd_core/api/routes_ipd_beds.py
from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, joinedload

from ipd_core.api.deps import get_db
from ipd_core.utils.resp import ok, fail
from ipd_core.models.ipd import IpdBed, IpdBedAssignment, IpdEncounter
from ipd_core.schemas.ipd import BedOut, BedBoardItem, BedList, BedStatusIn
from ipd_core.services import bed_registry, ipd_orchestrator
from ipd_core.services.errors import IpdError

router = APIRouter(prefix="/ipd", tags=["IPD Beds"])


def _bed_board(db: Session, beds: List[IpdBed]) -> List[BedBoardItem]:
    """Beds plus whoever currently holds them, from the open ledger rows."""
    ids = [b.id for b in beds]
    holders: Dict[int, IpdBedAssignment] = {}
    if ids:
        rows = (
            db.query(IpdBedAssignment)
            .options(joinedload(IpdBedAssignment.encounter).joinedload(IpdEncounter.patient))
            .filter(
                IpdBedAssignment.bed_id.in_(ids),
                IpdBedAssignment.released_at.is_(None),
            )
            .all()
        )
        holders = {r.bed_id: r for r in rows}

    items = []
    for b in beds:
        item = BedBoardItem.model_validate(b)
        a = holders.get(b.id)
        if a and a.encounter:
            item.encounter_id = a.encounter.id
            item.encounter_number = a.encounter.encounter_number
            item.patient_id = a.encounter.patient_id
            item.patient_name = a.encounter.patient.full_name if a.encounter.patient else None
        items.append(item)
    return items


@router.get("/beds")
def list_beds(
    ward_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    beds = bed_registry.list_beds(db, ward_id=ward_id, status=(status or "").lower() or None)
    items = _bed_board(db, beds)
    return ok({"items": items, "count": len(items)})


@router.get("/beds/available")
def list_available_beds(
    ward_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    beds = bed_registry.list_available_beds(db, ward_id=ward_id)
    items = [BedOut.model_validate(b) for b in beds]
    return ok(BedList(items=items, count=len(items)))


@router.get("/beds/{bed_id}")
def get_bed(bed_id: int, db: Session = Depends(get_db)):
    try:
        bed = bed_registry.get_bed(db, bed_id)
    except IpdError as e:
        return fail(e)
    return ok(_bed_board(db, [bed])[0])


@router.patch("/beds/{bed_id}/status")
def update_bed_status(
    bed_id: int,
    payload: BedStatusIn,
    db: Session = Depends(get_db),
):
    try:
        out = ipd_orchestrator.set_bed_housekeeping_status(db, bed_id, payload.status)
    except IpdError as e:
        return fail(e)
    return ok(out)
