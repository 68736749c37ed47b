"""Domain services and their wiring."""

from __future__ import annotations

from dataclasses import dataclass

from clinic_records.connections import ConnectionSource
from clinic_records.registry import ScopedConnectionRegistry
from clinic_records.services.clinical_records import ClinicalRecordService
from clinic_records.services.patients import PatientService
from clinic_records.services.statistics import RecordStatistics, collect_statistics
from clinic_records.stores.clinical_record import ClinicalRecordStore
from clinic_records.stores.patient import PatientStore


@dataclass(frozen=True)
class ClinicServices:
    """Services sharing one connection source and one registry."""

    source: ConnectionSource
    registry: ScopedConnectionRegistry
    patients: PatientService
    records: ClinicalRecordService

    @classmethod
    def from_source(cls, source: ConnectionSource) -> ClinicServices:
        registry = ScopedConnectionRegistry(source)
        patient_store = PatientStore(registry)
        record_store = ClinicalRecordStore(registry)
        return cls(
            source=source,
            registry=registry,
            patients=PatientService(source, registry, patients=patient_store, records=record_store),
            records=ClinicalRecordService(source, registry, records=record_store, patients=patient_store),
        )

    def statistics(self) -> RecordStatistics:
        return collect_statistics(self.patients, self.records)


__all__ = [
    "ClinicServices",
    "ClinicalRecordService",
    "PatientService",
    "RecordStatistics",
    "collect_statistics",
]
