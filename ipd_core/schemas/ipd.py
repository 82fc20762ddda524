# FILE: ipd_core/schemas/ipd.py
from __future__ import annotations
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict, field_validator

from ipd_core.models.ipd import ENC_EMERGENCY, ENC_INPATIENT
from ipd_core.services.bed_registry import normalize_bed_type

# =====================================================================
# ------------------------------ Vocab --------------------------------
# =====================================================================

ADMISSION_TYPES = {"emergency", "elective", "observation", "urgent", "routine"}
HOUSEKEEPING_STATUSES = {"available", "maintenance", "cleaning"}

# =====================================================================
# ------------------------------ Inputs --------------------------------
# =====================================================================


class AdmitIn(BaseModel):
    patient_id: int = Field(..., gt=0)
    bed_id: int = Field(..., gt=0)

    # any one of these identifies the attending physician
    attending_physician_id: Optional[int] = None
    attending_physician_code: Optional[str] = Field(None, max_length=20)
    attending_physician: Optional[str] = Field(None, max_length=120)

    admission_type: str = "routine"
    priority: str = "routine"
    severity: Optional[str] = Field(None, max_length=20)
    acuity_level: Optional[str] = Field(None, max_length=20)

    chief_complaint: str = Field(..., min_length=1, max_length=1000)
    primary_diagnosis: Optional[str] = Field(None, max_length=500)
    icd10_code: Optional[str] = Field(None, max_length=20)
    icd10_description: Optional[str] = Field(None, max_length=1000)
    admission_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("admission_type", "priority", mode="before")
    @classmethod
    def _lower(cls, v):
        return (v or "").strip().lower()

    @field_validator("admission_type")
    @classmethod
    def _admission_type(cls, v: str) -> str:
        if v not in ADMISSION_TYPES:
            raise ValueError(f"admission_type must be one of {sorted(ADMISSION_TYPES)}")
        return v

    @property
    def encounter_type(self) -> str:
        return ENC_EMERGENCY if self.admission_type == "emergency" else ENC_INPATIENT


class TransferIn(BaseModel):
    to_bed_id: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=500)


class AssignBedIn(BaseModel):
    bed_id: int = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=1000)


class ReleaseBedIn(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class DischargeIn(BaseModel):
    discharge_at: Optional[datetime] = None
    discharge_summary: Optional[str] = Field(None, max_length=2000)
    discharge_condition: Optional[str] = Field(None, max_length=500)
    release_notes: Optional[str] = Field(None, max_length=1000)


class BedStatusIn(BaseModel):
    status: str

    @field_validator("status", mode="before")
    @classmethod
    def _lower(cls, v):
        return (v or "").strip().lower()


# =====================================================================
# ------------------------------ Outputs -------------------------------
# =====================================================================


class BedOut(BaseModel):
    id: int
    bed_number: str
    ward_id: int
    ward_name: Optional[str] = None
    bed_type: str
    status: str
    last_occupied_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("bed_type", mode="before")
    @classmethod
    def _bed_type(cls, v):
        return normalize_bed_type(v)


class BedBoardItem(BedOut):
    encounter_id: Optional[int] = None
    encounter_number: Optional[str] = None
    patient_id: Optional[int] = None
    patient_name: Optional[str] = None


class AssignmentOut(BaseModel):
    id: int
    encounter_id: int
    bed_id: int
    assigned_at: datetime
    assigned_by: Optional[str] = None
    assignment_notes: Optional[str] = ""
    released_at: Optional[datetime] = None
    released_by: Optional[str] = None
    release_notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class EncounterOut(BaseModel):
    id: int
    encounter_number: str
    patient_id: int
    patient_name: Optional[str] = None
    type: str
    status: str
    priority: Optional[str] = None
    severity: Optional[str] = None
    acuity_level: Optional[str] = None
    chief_complaint: Optional[str] = ""
    attending_physician_id: Optional[int] = None
    admitted_at: datetime
    discharge_at: Optional[datetime] = None
    current_bed_id: Optional[int] = None
    current_bed_number: Optional[str] = None
    current_ward_name: Optional[str] = None


class AdmissionOut(BaseModel):
    encounter_id: int
    encounter_number: str
    patient_id: int
    assignment_id: int
    bed_id: int
    bed_number: str
    bed_type: str
    ward_id: int
    ward_name: Optional[str] = None
    physician_code: str
    admitted_at: datetime


class PlacementOut(BaseModel):
    """Result of placing an already-admitted encounter in a bed."""
    encounter_id: int
    assignment_id: int
    bed_id: int
    bed_number: str
    ward_name: Optional[str] = None


class TransferOut(BaseModel):
    encounter_id: int
    from_bed_id: int
    from_bed_number: str
    to_bed_id: int
    to_bed_number: str
    to_ward_name: Optional[str] = None
    released_assignment_id: int
    assignment_id: int


class ReleaseOut(BaseModel):
    encounter_id: int
    assignment_id: int
    bed_id: int
    bed_number: str
    released_at: datetime


class DischargeOut(BaseModel):
    encounter_id: int
    patient_name: str
    discharge_at: datetime
    released_assignment_id: Optional[int] = None
    bed_id: Optional[int] = None
    bed_number: Optional[str] = None


class BedList(BaseModel):
    items: List[BedOut]
    count: int
