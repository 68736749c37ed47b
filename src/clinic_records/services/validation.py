"""Input rules applied by services before anything reaches a store."""

from __future__ import annotations

from datetime import date

from clinic_records.entities import BloodType, ClinicalRecord, Patient
from clinic_records.exceptions import RecordValidationError

EARLIEST_BIRTH_DATE = date(1900, 1, 1)


def _require(value: str | None, field: str, label: str) -> str:
    if value is None or not value.strip():
        raise RecordValidationError(f"{label} is required", field=field)
    return value.strip()


def require_positive_id(id: int | None, label: str) -> int:
    if id is None or id <= 0:
        raise RecordValidationError(f"Invalid {label} id: {id!r}", field="id")
    return id


def normalize_dni(dni: str | None) -> str:
    return _require(dni, "dni", "Patient DNI").upper()


def validate_patient(patient: Patient, *, today: date | None = None) -> Patient:
    """Return a normalized copy of *patient* or raise ``RecordValidationError``."""
    today = today or date.today()
    first_name = _require(patient.first_name, "first_name", "Patient first name")
    last_name = _require(patient.last_name, "last_name", "Patient last name")
    dni = normalize_dni(patient.dni)
    if patient.birth_date is not None:
        if patient.birth_date > today:
            raise RecordValidationError("Birth date cannot be in the future", field="birth_date")
        if patient.birth_date < EARLIEST_BIRTH_DATE:
            raise RecordValidationError("Birth date cannot be before 1900-01-01", field="birth_date")
    return patient.model_copy(update={"first_name": first_name, "last_name": last_name, "dni": dni})


def validate_clinical_record(record: ClinicalRecord) -> ClinicalRecord:
    """Return a normalized copy of *record* or raise ``RecordValidationError``."""
    number = _require(record.record_number, "record_number", "Clinical record number").upper()
    if record.blood_type is None:
        raise RecordValidationError("Blood type is required", field="blood_type")
    return record.model_copy(update={"record_number": number})


def parse_blood_type(value: str | None) -> BloodType:
    """Parse user input such as ``"o+"`` into a :class:`BloodType`."""
    if value is None or not value.strip():
        raise RecordValidationError("Blood type cannot be empty", field="blood_type")
    return BloodType.from_db_value(value)
