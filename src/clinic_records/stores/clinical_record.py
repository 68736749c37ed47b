"""Store for ``historia_clinica`` rows."""

from __future__ import annotations

from clinic_records.entities import ClinicalRecord
from clinic_records.mapper import clinical_record_from_row, clinical_record_values
from clinic_records.registry import ScopedConnectionRegistry
from clinic_records.schema import clinical_record_table
from clinic_records.stores.base import SoftDeleteStore


class ClinicalRecordStore(SoftDeleteStore[ClinicalRecord]):
    """Clinical records. Knows nothing about the patients pointing at them."""

    entity_name = "ClinicalRecord"

    def __init__(self, registry: ScopedConnectionRegistry) -> None:
        super().__init__(
            registry,
            clinical_record_table,
            from_row=clinical_record_from_row,
            to_values=clinical_record_values,
        )
