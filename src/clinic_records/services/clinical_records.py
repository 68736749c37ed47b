"""Clinical record operations."""

from __future__ import annotations

from clinic_records.connections import ConnectionSource
from clinic_records.entities import BloodType, ClinicalRecord
from clinic_records.exceptions import EntityNotFoundError, RecordValidationError
from clinic_records.registry import ScopedConnectionRegistry
from clinic_records.services.base import TransactionalService
from clinic_records.services.validation import parse_blood_type, require_positive_id, validate_clinical_record
from clinic_records.stores.clinical_record import ClinicalRecordStore
from clinic_records.stores.patient import PatientStore


class ClinicalRecordService(TransactionalService):
    """Clinical records are only ever created for an existing patient."""

    def __init__(
        self,
        source: ConnectionSource,
        registry: ScopedConnectionRegistry,
        *,
        records: ClinicalRecordStore | None = None,
        patients: PatientStore | None = None,
    ) -> None:
        super().__init__(source, registry)
        self._records = records or ClinicalRecordStore(registry)
        self._patients = patients or PatientStore(registry)

    @staticmethod
    def parse_blood_type(value: str | None) -> BloodType:
        return parse_blood_type(value)

    def create_for_patient(self, record: ClinicalRecord, patient_id: int) -> ClinicalRecord:
        """Store *record* and link it to an active patient that has none yet."""
        with self._unit_of_work("create_clinical_record"):
            require_positive_id(patient_id, "patient")
            record = validate_clinical_record(record)
            patient = self._patients.read_by_id(patient_id)
            if patient is None:
                raise EntityNotFoundError(
                    entity_name="Patient",
                    operation="create_clinical_record",
                    detail=f"No active patient with id {patient_id}.",
                )
            if patient.clinical_record_id is not None:
                raise RecordValidationError(
                    f"Patient {patient_id} already has clinical record {patient.clinical_record_id}",
                    field="patient_id",
                )
            created = self._records.create(record)
            assert created.id is not None  # noqa: S101
            self._patients.link_clinical_record(patient_id, created.id)
            return created

    def update(self, record: ClinicalRecord) -> None:
        with self._unit_of_work("update_clinical_record"):
            require_positive_id(record.id, "clinical record")
            self._records.update(validate_clinical_record(record))

    def delete(self, id: int) -> None:
        with self._unit_of_work("delete_clinical_record"):
            self._records.soft_delete(require_positive_id(id, "clinical record"))

    def recover(self, id: int) -> None:
        with self._unit_of_work("recover_clinical_record"):
            self._records.recover(require_positive_id(id, "clinical record"))

    def get_by_id(self, id: int) -> ClinicalRecord | None:
        with self._reading("get_clinical_record"):
            return self._records.read_by_id(require_positive_id(id, "clinical record"))

    def list_active(self) -> list[ClinicalRecord]:
        with self._reading("list_clinical_records"):
            return self._records.read_all()

    def list_deleted(self) -> list[ClinicalRecord]:
        with self._reading("list_deleted_clinical_records"):
            return self._records.read_all_deleted()

    def count_deleted(self) -> int:
        with self._reading("count_deleted_clinical_records"):
            return self._records.count_deleted()
