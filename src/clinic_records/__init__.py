"""Clinic Records — transactional patient and clinical record storage with logical delete."""

from clinic_records.config import DatabaseSettings, load_settings
from clinic_records.connections import ConnectionSource
from clinic_records.entities import BloodType, ClinicalRecord, Patient
from clinic_records.exceptions import (
    ConfigurationError,
    ConnectionFailedError,
    DuplicateEntityError,
    EntityNotFoundError,
    IllegalStateError,
    PersistenceError,
    QueryError,
    RecordValidationError,
    ServiceError,
    TransactionError,
)
from clinic_records.protocols import EntityStore
from clinic_records.registry import Owned, ScopedConnectionRegistry, Shared
from clinic_records.schema import ensure_schema
from clinic_records.services import ClinicalRecordService, ClinicServices, PatientService
from clinic_records.stores.base import SoftDeleteStore
from clinic_records.stores.clinical_record import ClinicalRecordStore
from clinic_records.stores.patient import PatientStore
from clinic_records.transaction import TransactionContext, TransactionState, transaction

__all__ = [
    "BloodType",
    "ClinicServices",
    "ClinicalRecord",
    "ClinicalRecordService",
    "ClinicalRecordStore",
    "ConfigurationError",
    "ConnectionFailedError",
    "ConnectionSource",
    "DatabaseSettings",
    "DuplicateEntityError",
    "EntityNotFoundError",
    "EntityStore",
    "IllegalStateError",
    "Owned",
    "Patient",
    "PatientService",
    "PatientStore",
    "PersistenceError",
    "QueryError",
    "RecordValidationError",
    "ScopedConnectionRegistry",
    "ServiceError",
    "Shared",
    "SoftDeleteStore",
    "TransactionContext",
    "TransactionError",
    "TransactionState",
    "ensure_schema",
    "load_settings",
    "transaction",
]
