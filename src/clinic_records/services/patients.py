"""Patient operations, including atomic creation with a clinical record."""

from __future__ import annotations

from clinic_records.connections import ConnectionSource
from clinic_records.entities import ClinicalRecord, Patient
from clinic_records.exceptions import DuplicateEntityError, EntityNotFoundError
from clinic_records.registry import ScopedConnectionRegistry
from clinic_records.services.base import TransactionalService
from clinic_records.services.validation import (
    normalize_dni,
    require_positive_id,
    validate_clinical_record,
    validate_patient,
)
from clinic_records.stores.clinical_record import ClinicalRecordStore
from clinic_records.stores.patient import PatientStore


class PatientService(TransactionalService):
    """Validates patient input and runs every write in its own transaction."""

    def __init__(
        self,
        source: ConnectionSource,
        registry: ScopedConnectionRegistry,
        *,
        patients: PatientStore | None = None,
        records: ClinicalRecordStore | None = None,
    ) -> None:
        super().__init__(source, registry)
        self._patients = patients or PatientStore(registry)
        self._records = records or ClinicalRecordStore(registry)

    def _ensure_dni_free(self, dni: str, *, operation: str, own_id: int | None = None) -> None:
        existing = self._patients.find_by_dni(dni)
        if existing is not None and existing.id != own_id:
            raise DuplicateEntityError(
                entity_name="Patient",
                operation=operation,
                detail=f"A patient with DNI {dni} already exists.",
            )

    # -- Writes -------------------------------------------------------------

    def create(self, patient: Patient) -> Patient:
        """Register a patient without a clinical record."""
        return self.create_with_clinical_record(patient, None)

    def create_with_clinical_record(self, patient: Patient, record: ClinicalRecord | None) -> Patient:
        """Create a patient and, optionally, its clinical record as one unit of work.

        Either both rows are stored and linked, or neither is.
        """
        with self._unit_of_work("create_patient"):
            patient = validate_patient(patient)
            self._ensure_dni_free(patient.dni, operation="create")
            created = self._patients.create(patient)
            if record is None:
                return created
            record = validate_clinical_record(record)
            stored_record = self._records.create(record)
            assert created.id is not None and stored_record.id is not None  # noqa: S101
            self._patients.link_clinical_record(created.id, stored_record.id)
            return created.model_copy(
                update={"clinical_record_id": stored_record.id, "clinical_record": stored_record}
            )

    def update(self, patient: Patient) -> None:
        with self._unit_of_work("update_patient"):
            require_positive_id(patient.id, "patient")
            patient = validate_patient(patient)
            if self._patients.read_by_id(patient.id) is None:
                raise EntityNotFoundError(
                    entity_name="Patient", operation="update", detail=f"No patient with id {patient.id}."
                )
            self._ensure_dni_free(patient.dni, operation="update", own_id=patient.id)
            self._patients.update(patient)

    def delete(self, id: int) -> None:
        with self._unit_of_work("delete_patient"):
            self._patients.soft_delete(require_positive_id(id, "patient"))

    def recover(self, id: int) -> None:
        with self._unit_of_work("recover_patient"):
            self._patients.recover(require_positive_id(id, "patient"))

    # -- Reads --------------------------------------------------------------

    def get_by_id(self, id: int) -> Patient | None:
        with self._reading("get_patient"):
            return self._patients.read_by_id(require_positive_id(id, "patient"))

    def find_by_dni(self, dni: str) -> Patient | None:
        with self._reading("find_patient_by_dni"):
            return self._patients.find_by_dni(normalize_dni(dni))

    def list_active(self) -> list[Patient]:
        with self._reading("list_patients"):
            return self._patients.read_all()

    def list_deleted(self) -> list[Patient]:
        with self._reading("list_deleted_patients"):
            return self._patients.read_all_deleted()

    def count_deleted(self) -> int:
        with self._reading("count_deleted_patients"):
            return self._patients.count_deleted()
