"""Row <-> entity conversion for both tables."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from clinic_records.entities import BloodType, ClinicalRecord, Patient

# Prefix for historia_clinica columns joined into patient reads.
JOINED_RECORD_PREFIX = "hc_"


def _blood_type(value: str | None) -> BloodType | None:
    if value is None:
        return None
    return BloodType.from_db_value(value)


def clinical_record_from_row(row: Mapping[str, Any], *, prefix: str = "", id_key: str = "id") -> ClinicalRecord:
    """Build a :class:`ClinicalRecord` from a result mapping.

    Raises:
        RecordValidationError: If ``grupo_sanguineo`` holds an unknown value.
    """
    return ClinicalRecord(
        id=row[id_key],
        deleted=bool(row[f"{prefix}eliminado"]),
        record_number=row[f"{prefix}nro_historia"],
        blood_type=_blood_type(row[f"{prefix}grupo_sanguineo"]),
        history=row[f"{prefix}antecedentes"],
        current_medication=row[f"{prefix}medicacion_actual"],
        notes=row[f"{prefix}observaciones"],
    )


def clinical_record_values(record: ClinicalRecord) -> dict[str, Any]:
    """Column values for INSERT/UPDATE, excluding ``id``."""
    return {
        "nro_historia": record.record_number,
        "grupo_sanguineo": record.blood_type.value if record.blood_type is not None else None,
        "antecedentes": record.history,
        "medicacion_actual": record.current_medication,
        "observaciones": record.notes,
        "eliminado": record.deleted,
    }


def patient_from_row(row: Mapping[str, Any]) -> Patient:
    """Build a :class:`Patient`, including its joined clinical record when linked."""
    fk = row["fk_historia_clinica"]
    record = None
    if fk and row.get(f"{JOINED_RECORD_PREFIX}nro_historia") is not None:
        record = clinical_record_from_row(row, prefix=JOINED_RECORD_PREFIX, id_key="fk_historia_clinica")
    return Patient(
        id=row["id"],
        deleted=bool(row["eliminado"]),
        first_name=row["nombre"],
        last_name=row["apellido"],
        dni=row["dni"],
        birth_date=row["fecha_nacimiento"],
        clinical_record_id=fk or None,
        clinical_record=record,
    )


def patient_values(patient: Patient) -> dict[str, Any]:
    """Column values for INSERT/UPDATE, excluding ``id``."""
    fk = patient.clinical_record_id
    if fk is None and patient.clinical_record is not None:
        fk = patient.clinical_record.id
    return {
        "nombre": patient.first_name,
        "apellido": patient.last_name,
        "dni": patient.dni,
        "fecha_nacimiento": patient.birth_date,
        "fk_historia_clinica": fk if fk and fk > 0 else None,
        "eliminado": patient.deleted,
    }
