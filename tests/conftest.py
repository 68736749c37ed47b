"""Shared fixtures for clinic-records tests."""

import pytest

from clinic_records.config import DatabaseSettings
from clinic_records.connections import ConnectionSource
from clinic_records.registry import ScopedConnectionRegistry
from clinic_records.schema import ensure_schema
from clinic_records.services import ClinicServices
from clinic_records.stores.clinical_record import ClinicalRecordStore
from clinic_records.stores.patient import PatientStore


@pytest.fixture(autouse=True)
def _clean_clinic_env(monkeypatch):
    """Keep CLINIC_DB_* variables from the outer shell out of every test."""
    for name in ("CLINIC_DB_URL", "CLINIC_DB_USER", "CLINIC_DB_PASSWORD", "CLINIC_DB_ECHO"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path) -> DatabaseSettings:
    return DatabaseSettings(url=f"sqlite:///{tmp_path / 'clinic.db'}", user="clinic", password="clinic")


@pytest.fixture
def source(settings: DatabaseSettings):
    src = ConnectionSource(settings)
    ensure_schema(src)
    yield src
    src.dispose()


@pytest.fixture
def registry(source: ConnectionSource) -> ScopedConnectionRegistry:
    return ScopedConnectionRegistry(source)


@pytest.fixture
def patient_store(registry: ScopedConnectionRegistry) -> PatientStore:
    return PatientStore(registry)


@pytest.fixture
def record_store(registry: ScopedConnectionRegistry) -> ClinicalRecordStore:
    return ClinicalRecordStore(registry)


@pytest.fixture
def services(source: ConnectionSource) -> ClinicServices:
    return ClinicServices.from_source(source)
