"""Patient and clinical record models."""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from clinic_records.exceptions import RecordValidationError


class BloodType(str, Enum):
    """Blood groups accepted in ``historia_clinica.grupo_sanguineo``."""

    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"

    @classmethod
    def from_db_value(cls, value: str | None) -> BloodType:
        """Parse a stored or typed value, ignoring case and surrounding blanks.

        Raises:
            RecordValidationError: If *value* is not one of the eight groups.
        """
        normalized = (value or "").strip().upper()
        for member in cls:
            if member.value == normalized:
                return member
        raise RecordValidationError(f"Invalid blood type: {value!r}", field="blood_type")

    def __str__(self) -> str:
        return self.value


class SoftDeletable(BaseModel):
    """Fields shared by every stored entity.

    ``id`` is assigned by the database on insert and never changes afterwards.
    ``deleted`` is the logical-delete flag; rows are never removed.
    """

    id: int | None = Field(default=None, description="Database-assigned primary key.")
    deleted: bool = Field(default=False, description="Logical delete flag.")

    model_config = {"extra": "forbid", "validate_assignment": True}


class ClinicalRecord(SoftDeletable):
    """A patient's clinical history (``historia_clinica``)."""

    record_number: str = Field(description="Clinical history number, e.g. 'HC-1'.")
    blood_type: BloodType | None = Field(default=None, description="Blood group.")
    history: str | None = Field(default=None, description="Medical background.")
    current_medication: str | None = Field(default=None, description="Current medication.")
    notes: str | None = Field(default=None, description="Free-form observations.")


class Patient(SoftDeletable):
    """A registered patient, optionally linked to one clinical record."""

    first_name: str = Field(description="Given name.")
    last_name: str = Field(description="Family name.")
    dni: str = Field(description="National identity document number, unique.")
    birth_date: date | None = Field(default=None, description="Date of birth.")
    clinical_record_id: int | None = Field(default=None, description="Linked clinical record id.")
    clinical_record: ClinicalRecord | None = Field(
        default=None, description="Linked clinical record, populated on reads."
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
