"""Table definitions for the records database."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from clinic_records.entities import BloodType
from clinic_records.exceptions import ConnectionFailedError

if TYPE_CHECKING:
    from clinic_records.connections import ConnectionSource

logger = logging.getLogger(__name__)

metadata = sa.MetaData()

clinical_record_table = sa.Table(
    "historia_clinica",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("nro_historia", sa.String(20), nullable=False, unique=True),
    sa.Column("grupo_sanguineo", sa.String(3), nullable=True),
    sa.Column("antecedentes", sa.Text, nullable=True),
    sa.Column("medicacion_actual", sa.Text, nullable=True),
    sa.Column("observaciones", sa.Text, nullable=True),
    sa.Column("eliminado", sa.Boolean, nullable=False, default=False, server_default=sa.false()),
    sa.CheckConstraint(
        "grupo_sanguineo IS NULL OR grupo_sanguineo IN ({})".format(
            ", ".join(f"'{b.value}'" for b in BloodType)
        ),
        name="ck_historia_clinica_grupo_sanguineo",
    ),
)

patient_table = sa.Table(
    "patient",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("nombre", sa.String(80), nullable=False),
    sa.Column("apellido", sa.String(80), nullable=False),
    sa.Column("dni", sa.String(15), nullable=False, unique=True),
    sa.Column("fecha_nacimiento", sa.Date, nullable=True),
    sa.Column(
        "fk_historia_clinica",
        sa.Integer,
        sa.ForeignKey("historia_clinica.id"),
        nullable=True,
        unique=True,
    ),
    sa.Column("eliminado", sa.Boolean, nullable=False, default=False, server_default=sa.false()),
)


def ensure_schema(source: ConnectionSource) -> None:
    """Create both tables if they do not exist."""
    try:
        metadata.create_all(source.engine)
    except SQLAlchemyError as exc:
        logger.error("Schema creation failed for %s: %s", source.settings.safe_url, type(exc).__name__)
        raise ConnectionFailedError("Could not create the records schema.", cause=exc) from exc
    logger.info("Records schema ready at %s", source.settings.safe_url)
