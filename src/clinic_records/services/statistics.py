"""Active/deleted counts across both entities."""

from __future__ import annotations

from pydantic import BaseModel, Field, computed_field

from clinic_records.services.clinical_records import ClinicalRecordService
from clinic_records.services.patients import PatientService


class RecordStatistics(BaseModel):
    active_patients: int = Field(ge=0)
    deleted_patients: int = Field(ge=0)
    active_records: int = Field(ge=0)
    deleted_records: int = Field(ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_patients(self) -> int:
        return self.active_patients + self.deleted_patients

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_records(self) -> int:
        return self.active_records + self.deleted_records


def collect_statistics(patients: PatientService, records: ClinicalRecordService) -> RecordStatistics:
    return RecordStatistics(
        active_patients=len(patients.list_active()),
        deleted_patients=patients.count_deleted(),
        active_records=len(records.list_active()),
        deleted_records=records.count_deleted(),
    )
