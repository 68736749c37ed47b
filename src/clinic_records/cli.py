"""Clinic CLI — Typer commands for patients, clinical records and statistics."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import NoReturn

import typer

from clinic_records.config import load_settings
from clinic_records.connections import ConnectionSource
from clinic_records.entities import BloodType, ClinicalRecord, Patient
from clinic_records.exceptions import ConfigurationError, ConnectionFailedError, RecordValidationError, ServiceError
from clinic_records.schema import ensure_schema
from clinic_records.services import ClinicServices
from clinic_records.services.validation import parse_blood_type

app = typer.Typer(name="clinic", help="Hospital records: patients and clinical records.", no_args_is_help=True)
patients_app = typer.Typer(help="Manage patients.", no_args_is_help=True)
records_app = typer.Typer(help="Manage clinical records.", no_args_is_help=True)
app.add_typer(patients_app, name="patients")
app.add_typer(records_app, name="records")

_DATE_FORMATS = ["%Y-%m-%d"]


def _services(ctx: typer.Context) -> ClinicServices:
    return ctx.obj


def _fail(message: str) -> NoReturn:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _format_record(record: ClinicalRecord) -> str:
    blood = record.blood_type.value if record.blood_type else "-"
    text = f"#{record.id} {record.record_number} blood={blood}"
    if record.deleted:
        text += " [deleted]"
    return text


def _format_patient(patient: Patient) -> str:
    born = patient.birth_date.isoformat() if patient.birth_date else "-"
    text = f"#{patient.id} {patient.last_name}, {patient.first_name} dni={patient.dni} born={born}"
    if patient.clinical_record is not None:
        text += f" record={_format_record(patient.clinical_record)}"
    if patient.deleted:
        text += " [deleted]"
    return text


def _parse_blood(value: str | None) -> BloodType | None:
    if value is None:
        return None
    try:
        return parse_blood_type(value)
    except RecordValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.callback()
def main(
    ctx: typer.Context,
    config: Path = typer.Option(None, "--config", "-c", help="JSON settings file (default .clinic/database.json)."),
) -> None:
    """Load database settings once; missing or blank settings stop the program."""
    try:
        settings = load_settings(config)
    except ConfigurationError as exc:
        _fail(f"Configuration error: {exc}")
    ctx.obj = ClinicServices.from_source(ConnectionSource(settings))
    ctx.call_on_close(ctx.obj.source.dispose)


@app.command("init-db")
def init_db(ctx: typer.Context) -> None:
    """Create the patient and historia_clinica tables if missing."""
    services = _services(ctx)
    try:
        ensure_schema(services.source)
    except ConnectionFailedError as exc:
        _fail(f"Could not initialize database: {exc}")
    typer.echo(f"Schema ready at {services.source.settings.safe_url}")


@app.command()
def stats(ctx: typer.Context) -> None:
    """Show active, deleted and total counts."""
    try:
        summary = _services(ctx).statistics()
    except ServiceError as exc:
        _fail(str(exc))
    typer.echo(f"Active patients: {summary.active_patients}")
    typer.echo(f"Deleted patients: {summary.deleted_patients}")
    typer.echo(f"Total patients: {summary.total_patients}")
    typer.echo(f"Active clinical records: {summary.active_records}")
    typer.echo(f"Deleted clinical records: {summary.deleted_records}")
    typer.echo(f"Total clinical records: {summary.total_records}")


# -- Patients ---------------------------------------------------------------


@patients_app.command("list")
def list_patients(ctx: typer.Context) -> None:
    """List active patients."""
    services = _services(ctx)
    try:
        patients = services.patients.list_active()
        deleted = services.patients.count_deleted()
    except ServiceError as exc:
        _fail(str(exc))
    if not patients:
        typer.echo("No active patients.")
    for patient in patients:
        typer.echo(_format_patient(patient))
    typer.echo(f"Deleted patients: {deleted}")


@patients_app.command("deleted")
def list_deleted_patients(ctx: typer.Context) -> None:
    """List logically deleted patients."""
    try:
        patients = _services(ctx).patients.list_deleted()
    except ServiceError as exc:
        _fail(str(exc))
    if not patients:
        typer.echo("No deleted patients.")
    for patient in patients:
        typer.echo(_format_patient(patient))


@patients_app.command("show")
def show_patient(ctx: typer.Context, patient_id: int = typer.Argument(..., help="Patient id.")) -> None:
    """Show one active patient."""
    try:
        patient = _services(ctx).patients.get_by_id(patient_id)
    except ServiceError as exc:
        _fail(str(exc))
    if patient is None:
        _fail(f"No patient with id {patient_id}.")
    typer.echo(_format_patient(patient))


@patients_app.command("find")
def find_patient(ctx: typer.Context, dni: str = typer.Argument(..., help="DNI to look up.")) -> None:
    """Find an active patient by DNI."""
    try:
        patient = _services(ctx).patients.find_by_dni(dni)
    except ServiceError as exc:
        _fail(str(exc))
    if patient is None:
        _fail(f"No patient with DNI {dni}.")
    typer.echo(_format_patient(patient))


@patients_app.command("create")
def create_patient(
    ctx: typer.Context,
    first_name: str = typer.Option(..., "--first-name", help="Given name."),
    last_name: str = typer.Option(..., "--last-name", help="Family name."),
    dni: str = typer.Option(..., "--dni", help="National identity number."),
    birth_date: datetime = typer.Option(None, "--birth-date", formats=_DATE_FORMATS, help="YYYY-MM-DD."),
    record_number: str = typer.Option(None, "--record-number", help="Also create a clinical record with this number."),
    blood_type: str = typer.Option(None, "--blood-type", help="A+, A-, B+, B-, AB+, AB-, O+ or O-."),
    history: str = typer.Option(None, "--history", help="Medical background."),
    medication: str = typer.Option(None, "--medication", help="Current medication."),
    notes: str = typer.Option(None, "--notes", help="Observations."),
) -> None:
    """Create a patient, optionally with its clinical record, in one transaction."""
    patient = Patient(
        first_name=first_name,
        last_name=last_name,
        dni=dni,
        birth_date=birth_date.date() if birth_date else None,
    )
    record = None
    if record_number is not None:
        record = ClinicalRecord(
            record_number=record_number,
            blood_type=_parse_blood(blood_type),
            history=history,
            current_medication=medication,
            notes=notes,
        )
    try:
        created = _services(ctx).patients.create_with_clinical_record(patient, record)
    except ServiceError as exc:
        _fail(str(exc))
    typer.echo(f"Created patient {_format_patient(created)}")


@patients_app.command("update")
def update_patient(
    ctx: typer.Context,
    patient_id: int = typer.Argument(..., help="Patient id."),
    first_name: str = typer.Option(None, "--first-name"),
    last_name: str = typer.Option(None, "--last-name"),
    dni: str = typer.Option(None, "--dni"),
    birth_date: datetime = typer.Option(None, "--birth-date", formats=_DATE_FORMATS),
) -> None:
    """Change a patient's fields; omitted options keep their current value."""
    services = _services(ctx)
    try:
        current = services.patients.get_by_id(patient_id)
        if current is None:
            _fail(f"No patient with id {patient_id}.")
        changes = {
            key: value
            for key, value in {
                "first_name": first_name,
                "last_name": last_name,
                "dni": dni,
                "birth_date": birth_date.date() if birth_date else None,
            }.items()
            if value is not None
        }
        services.patients.update(current.model_copy(update=changes))
    except ServiceError as exc:
        _fail(str(exc))
    typer.echo(f"Updated patient {patient_id}.")


@patients_app.command("delete")
def delete_patient(
    ctx: typer.Context,
    patient_id: int = typer.Argument(..., help="Patient id."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Logically delete a patient."""
    if not yes:
        typer.confirm(f"Delete patient {patient_id}?", abort=True)
    try:
        _services(ctx).patients.delete(patient_id)
    except ServiceError as exc:
        _fail(str(exc))
    typer.echo(f"Deleted patient {patient_id}.")


@patients_app.command("recover")
def recover_patient(ctx: typer.Context, patient_id: int = typer.Argument(..., help="Patient id.")) -> None:
    """Restore a logically deleted patient."""
    try:
        _services(ctx).patients.recover(patient_id)
    except ServiceError as exc:
        _fail(str(exc))
    typer.echo(f"Recovered patient {patient_id}.")


# -- Clinical records -------------------------------------------------------


@records_app.command("list")
def list_records(ctx: typer.Context) -> None:
    """List active clinical records."""
    try:
        records = _services(ctx).records.list_active()
    except ServiceError as exc:
        _fail(str(exc))
    if not records:
        typer.echo("No active clinical records.")
    for record in records:
        typer.echo(_format_record(record))


@records_app.command("deleted")
def list_deleted_records(ctx: typer.Context) -> None:
    """List logically deleted clinical records."""
    try:
        records = _services(ctx).records.list_deleted()
    except ServiceError as exc:
        _fail(str(exc))
    if not records:
        typer.echo("No deleted clinical records.")
    for record in records:
        typer.echo(_format_record(record))


@records_app.command("show")
def show_record(ctx: typer.Context, record_id: int = typer.Argument(..., help="Clinical record id.")) -> None:
    """Show one active clinical record."""
    try:
        record = _services(ctx).records.get_by_id(record_id)
    except ServiceError as exc:
        _fail(str(exc))
    if record is None:
        _fail(f"No clinical record with id {record_id}.")
    typer.echo(_format_record(record))
    for label, value in (("History", record.history), ("Medication", record.current_medication), ("Notes", record.notes)):
        if value:
            typer.echo(f"  {label}: {value}")


@records_app.command("create")
def create_record(
    ctx: typer.Context,
    patient_id: int = typer.Argument(..., help="Patient that will own the record."),
    record_number: str = typer.Option(..., "--record-number", help="Clinical history number."),
    blood_type: str = typer.Option(..., "--blood-type", help="A+, A-, B+, B-, AB+, AB-, O+ or O-."),
    history: str = typer.Option(None, "--history"),
    medication: str = typer.Option(None, "--medication"),
    notes: str = typer.Option(None, "--notes"),
) -> None:
    """Create a clinical record for an existing patient."""
    record = ClinicalRecord(
        record_number=record_number,
        blood_type=_parse_blood(blood_type),
        history=history,
        current_medication=medication,
        notes=notes,
    )
    try:
        created = _services(ctx).records.create_for_patient(record, patient_id)
    except ServiceError as exc:
        _fail(str(exc))
    typer.echo(f"Created clinical record {_format_record(created)} for patient {patient_id}")


@records_app.command("update")
def update_record(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Clinical record id."),
    record_number: str = typer.Option(None, "--record-number"),
    blood_type: str = typer.Option(None, "--blood-type"),
    history: str = typer.Option(None, "--history"),
    medication: str = typer.Option(None, "--medication"),
    notes: str = typer.Option(None, "--notes"),
) -> None:
    """Change a clinical record; omitted options keep their current value."""
    services = _services(ctx)
    try:
        current = services.records.get_by_id(record_id)
        if current is None:
            _fail(f"No clinical record with id {record_id}.")
        changes = {
            key: value
            for key, value in {
                "record_number": record_number,
                "blood_type": _parse_blood(blood_type),
                "history": history,
                "current_medication": medication,
                "notes": notes,
            }.items()
            if value is not None
        }
        services.records.update(current.model_copy(update=changes))
    except ServiceError as exc:
        _fail(str(exc))
    typer.echo(f"Updated clinical record {record_id}.")


@records_app.command("delete")
def delete_record(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Clinical record id."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Logically delete a clinical record."""
    if not yes:
        typer.confirm(f"Delete clinical record {record_id}?", abort=True)
    try:
        _services(ctx).records.delete(record_id)
    except ServiceError as exc:
        _fail(str(exc))
    typer.echo(f"Deleted clinical record {record_id}.")


@records_app.command("recover")
def recover_record(ctx: typer.Context, record_id: int = typer.Argument(..., help="Clinical record id.")) -> None:
    """Restore a logically deleted clinical record."""
    try:
        _services(ctx).records.recover(record_id)
    except ServiceError as exc:
        _fail(str(exc))
    typer.echo(f"Recovered clinical record {record_id}.")
