"""Tests for the soft-delete stores against a file-backed SQLite database."""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import OperationalError, ProgrammingError

from clinic_records.entities import BloodType, ClinicalRecord, Patient
from clinic_records.exceptions import (
    ConnectionFailedError,
    DuplicateEntityError,
    EntityNotFoundError,
    IllegalStateError,
    QueryError,
    RecordValidationError,
)
from clinic_records.registry import Shared
from clinic_records.schema import clinical_record_table
from clinic_records.transaction import transaction


def _patient(dni: str = "12345678", **overrides) -> Patient:
    values = {"first_name": "Ana", "last_name": "García", "dni": dni, "birth_date": date(1985, 4, 2)}
    values.update(overrides)
    return Patient(**values)


def _record(number: str = "HC-1", **overrides) -> ClinicalRecord:
    values = {"record_number": number, "blood_type": BloodType.O_POS}
    values.update(overrides)
    return ClinicalRecord(**values)


@pytest.fixture
def in_tx(source, registry):
    """Run a callable inside a committed transaction."""

    def run(fn, *args):
        with transaction(source, registry):
            return fn(*args)

    return run


class TestCreateAndRead:
    def test_create_assigns_id(self, record_store, in_tx):
        created = in_tx(record_store.create, _record())
        assert created.id is not None and created.id > 0
        assert created.record_number == "HC-1"

    def test_read_by_id(self, record_store, in_tx):
        created = in_tx(record_store.create, _record(history="asthma"))
        found = record_store.read_by_id(created.id)
        assert found == created
        assert found.history == "asthma"

    def test_read_by_id_missing(self, record_store):
        assert record_store.read_by_id(999) is None

    def test_read_all_ordered_by_id(self, record_store, in_tx):
        in_tx(record_store.create, _record("HC-1"))
        in_tx(record_store.create, _record("HC-2", blood_type=BloodType.AB_NEG))
        numbers = [r.record_number for r in record_store.read_all()]
        assert numbers == ["HC-1", "HC-2"]

    def test_patient_read_includes_linked_record(self, patient_store, record_store, in_tx):
        def create_both():
            patient = patient_store.create(_patient())
            record = record_store.create(_record())
            patient_store.link_clinical_record(patient.id, record.id)
            return patient.id, record.id

        patient_id, record_id = in_tx(create_both)
        patient = patient_store.read_by_id(patient_id)
        assert patient.clinical_record_id == record_id
        assert patient.clinical_record is not None
        assert patient.clinical_record.id == record_id
        assert patient.clinical_record.blood_type is BloodType.O_POS
        assert patient.birth_date == date(1985, 4, 2)

    def test_patient_without_record(self, patient_store, in_tx):
        created = in_tx(patient_store.create, _patient())
        patient = patient_store.read_by_id(created.id)
        assert patient.clinical_record_id is None
        assert patient.clinical_record is None

    def test_find_by_dni(self, patient_store, in_tx):
        created = in_tx(patient_store.create, _patient())
        assert patient_store.find_by_dni("12345678").id == created.id
        assert patient_store.find_by_dni("00000000") is None

    def test_reads_join_active_transaction(self, source, registry, record_store):
        with transaction(source, registry):
            created = record_store.create(_record())
            assert record_store.read_by_id(created.id) is not None
            assert len(record_store.read_all()) == 1

    def test_unknown_blood_type_in_database(self, source, record_store):
        with source.open(autocommit=True) as conn:
            conn.execute(sa.text("PRAGMA ignore_check_constraints = ON"))
            conn.execute(clinical_record_table.insert().values(nro_historia="HC-9", grupo_sanguineo="Z+"))
        with pytest.raises(RecordValidationError, match="Invalid blood type"):
            record_store.read_all()


class TestSoftDelete:
    def test_soft_delete_hides_row(self, patient_store, in_tx):
        created = in_tx(patient_store.create, _patient())
        in_tx(patient_store.soft_delete, created.id)

        assert patient_store.read_by_id(created.id) is None
        assert patient_store.read_all() == []
        assert patient_store.find_by_dni("12345678") is None
        assert [p.id for p in patient_store.read_all_deleted()] == [created.id]
        assert patient_store.count_deleted() == 1
        with_deleted = patient_store.read_by_id_with_deleted(created.id)
        assert with_deleted is not None and with_deleted.deleted is True

    def test_recover_restores_row(self, record_store, in_tx):
        created = in_tx(record_store.create, _record())
        in_tx(record_store.soft_delete, created.id)
        in_tx(record_store.recover, created.id)

        assert record_store.read_by_id(created.id) is not None
        assert record_store.count_deleted() == 0
        assert record_store.read_all_deleted() == []

    def test_soft_delete_twice(self, record_store, in_tx):
        created = in_tx(record_store.create, _record())
        in_tx(record_store.soft_delete, created.id)
        with pytest.raises(EntityNotFoundError, match="No active ClinicalRecord"):
            in_tx(record_store.soft_delete, created.id)

    def test_recover_active_row(self, record_store, in_tx):
        created = in_tx(record_store.create, _record())
        with pytest.raises(EntityNotFoundError, match="No deleted ClinicalRecord"):
            in_tx(record_store.recover, created.id)

    def test_count_deleted_empty(self, patient_store):
        assert patient_store.count_deleted() == 0


class TestUpdate:
    def test_update_changes_fields(self, patient_store, in_tx):
        created = in_tx(patient_store.create, _patient())
        in_tx(patient_store.update, created.model_copy(update={"last_name": "Pérez"}))
        assert patient_store.read_by_id(created.id).last_name == "Pérez"

    def test_update_does_not_touch_delete_flag(self, record_store, in_tx):
        created = in_tx(record_store.create, _record())
        in_tx(record_store.update, created.model_copy(update={"notes": "x", "deleted": True}))
        found = record_store.read_by_id(created.id)
        assert found is not None
        assert found.notes == "x"

    def test_update_missing_id(self, record_store, in_tx):
        with pytest.raises(EntityNotFoundError):
            in_tx(record_store.update, _record().model_copy(update={"id": 42}))

    def test_update_deleted_row(self, record_store, in_tx):
        created = in_tx(record_store.create, _record())
        in_tx(record_store.soft_delete, created.id)
        with pytest.raises(EntityNotFoundError):
            in_tx(record_store.update, created.model_copy(update={"notes": "late"}))


class TestValidationAndErrors:
    @pytest.mark.parametrize("bad_id", [0, -1])
    def test_non_positive_id(self, record_store, in_tx, bad_id):
        with pytest.raises(RecordValidationError) as excinfo:
            in_tx(record_store.soft_delete, bad_id)
        assert excinfo.value.field == "id"

    def test_update_without_id(self, record_store, in_tx):
        with pytest.raises(RecordValidationError):
            in_tx(record_store.update, _record())

    def test_write_without_transaction(self, record_store):
        with pytest.raises(IllegalStateError, match="No active transaction"):
            record_store.create(_record())

    def test_soft_delete_without_transaction(self, patient_store):
        with pytest.raises(IllegalStateError):
            patient_store.soft_delete(1)

    def test_duplicate_dni(self, patient_store, in_tx):
        in_tx(patient_store.create, _patient())
        with pytest.raises(DuplicateEntityError) as excinfo:
            in_tx(patient_store.create, _patient(first_name="Otra"))
        assert excinfo.value.entity_name == "Patient"
        assert excinfo.value.operation == "create"

    def test_link_missing_patient(self, patient_store, record_store, in_tx):
        def link():
            record = record_store.create(_record())
            patient_store.link_clinical_record(999, record.id)

        with pytest.raises(EntityNotFoundError):
            in_tx(link)
        assert record_store.read_all() == []

    def test_driver_error_on_read_is_query_error(self, registry, record_store):
        conn = MagicMock()
        conn.execute.side_effect = ProgrammingError("SELECT", {}, Exception("bad parameter"))
        with patch.object(registry, "current", return_value=Shared(conn)):
            with pytest.raises(QueryError) as excinfo:
                record_store.read_all()
        assert excinfo.value.operation == "read_all"
        assert isinstance(excinfo.value.__cause__, ProgrammingError)

    def test_lost_connection_on_read(self, registry, record_store):
        conn = MagicMock()
        conn.execute.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
        with patch.object(registry, "current", return_value=Shared(conn)):
            with pytest.raises(ConnectionFailedError, match="during read"):
                record_store.read_by_id(1)
