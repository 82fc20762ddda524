# ipd_core/models/__init__.py
from .patient import Patient
from .physician import Physician
from .ipd import IpdWard, IpdBed, IpdEncounter, IpdBedAssignment, IpdDiagnosis

__all__ = [
    "Patient",
    "Physician",
    "IpdWard",
    "IpdBed",
    "IpdEncounter",
    "IpdBedAssignment",
    "IpdDiagnosis",
]
