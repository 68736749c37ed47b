"""Store for ``patient`` rows, read together with their clinical record."""

from __future__ import annotations

import logging

import sqlalchemy as sa

from clinic_records.entities import Patient
from clinic_records.mapper import JOINED_RECORD_PREFIX, patient_from_row, patient_values
from clinic_records.registry import ScopedConnectionRegistry
from clinic_records.schema import clinical_record_table, patient_table
from clinic_records.stores import _validate_id
from clinic_records.stores.base import SoftDeleteStore

logger = logging.getLogger(__name__)

_JOINED_COLUMNS = (
    "nro_historia",
    "grupo_sanguineo",
    "antecedentes",
    "medicacion_actual",
    "observaciones",
    "eliminado",
)


class PatientStore(SoftDeleteStore[Patient]):
    """Patients, LEFT JOINed with ``historia_clinica`` on every read."""

    entity_name = "Patient"

    def __init__(self, registry: ScopedConnectionRegistry) -> None:
        super().__init__(registry, patient_table, from_row=patient_from_row, to_values=patient_values)

    def _base_select(self) -> sa.Select:
        hc = clinical_record_table
        joined = [hc.c[name].label(f"{JOINED_RECORD_PREFIX}{name}") for name in _JOINED_COLUMNS]
        return sa.select(patient_table, *joined).select_from(
            patient_table.outerjoin(hc, patient_table.c.fk_historia_clinica == hc.c.id)
        )

    def find_by_dni(self, dni: str) -> Patient | None:
        """Return the active patient with this DNI, or None."""
        rows = self._fetch("find_by_dni", self._active().where(patient_table.c.dni == dni))
        return self._from_row(rows[0]) if rows else None

    def link_clinical_record(self, patient_id: int, record_id: int) -> None:
        """Point an active patient at a clinical record."""
        _validate_id(patient_id, entity_name=self.entity_name)
        _validate_id(record_id, entity_name="ClinicalRecord")
        stmt = (
            patient_table.update()
            .where(patient_table.c.id == patient_id, patient_table.c.eliminado == sa.false())
            .values(fk_historia_clinica=record_id)
        )
        result = self._execute_write("link_clinical_record", stmt)
        self._expect_one_row(
            "link_clinical_record", result, patient_id, f"No active Patient with id {patient_id}."
        )
        logger.debug("Linked Patient id=%s to ClinicalRecord id=%s", patient_id, record_id)
