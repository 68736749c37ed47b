"""Physical connection source: one new database connection per ``open()``."""

from __future__ import annotations

import logging
import re

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from clinic_records.config import DatabaseSettings, load_settings
from clinic_records.exceptions import ConnectionFailedError

logger = logging.getLogger(__name__)

# SQLite URLs carry no credentials; the pysqlite dialect rejects them.
_CREDENTIAL_FREE_BACKENDS = frozenset({"sqlite"})


class _CredentialRedactFilter(logging.Filter):
    """Logging filter that scrubs credentials from SQLAlchemy log messages."""

    _SCRUB_RE = re.compile(
        r"://[A-Za-z0-9_.~%!$&'()*+,;=:-]+@",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._SCRUB_RE.sub("://***:***@", record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: self._SCRUB_RE.sub("://***:***@", v) if isinstance(v, str) else v
                    for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    self._SCRUB_RE.sub("://***:***@", a) if isinstance(a, str) else a
                    for a in record.args
                )
        return True


def build_url(settings: DatabaseSettings) -> sa.URL:
    """Combine the settings URL with the configured credentials."""
    try:
        url = sa.make_url(settings.url)
    except ArgumentError as exc:
        raise ConnectionFailedError(f"Invalid database URL '{settings.safe_url}'.", cause=exc) from exc
    if url.get_backend_name() in _CREDENTIAL_FREE_BACKENDS:
        return url
    return url.set(username=settings.user, password=settings.password)


class ConnectionSource:
    """Opens new physical connections from static settings.

    The engine is built with :class:`~sqlalchemy.pool.NullPool`, so every
    :meth:`open` creates a brand-new DBAPI connection and closing it releases
    that connection for good. Nothing is pooled or cached.
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        self._settings = settings
        self._engine: Engine | None = None

    @classmethod
    def from_settings(cls, path: str | None = None) -> ConnectionSource:
        """Load and validate settings, failing fast on missing values."""
        return cls(load_settings(path))

    @property
    def settings(self) -> DatabaseSettings:
        return self._settings

    @property
    def engine(self) -> Engine:
        """Create the engine on first access."""
        if self._engine is None:
            url = build_url(self._settings)
            try:
                engine = sa.create_engine(url, poolclass=NullPool, echo=self._settings.echo)
            except ArgumentError as exc:
                logger.error("Engine creation failed for %s: %s", self._settings.safe_url, type(exc).__name__)
                raise ConnectionFailedError(
                    f"Cannot create engine for '{self._settings.safe_url}'.", cause=exc
                ) from exc
            if self._settings.echo:
                _install_credential_filter(engine)
            self._engine = engine
        return self._engine

    def open(self, *, autocommit: bool = False) -> Connection:
        """Open a new physical connection.

        With ``autocommit=True`` every statement is committed as it runs;
        otherwise the caller is expected to begin and end a transaction.

        Raises:
            ConnectionFailedError: If the store is unreachable or misconfigured.
        """
        engine = self.engine
        try:
            connection = engine.connect()
        except SQLAlchemyError as exc:
            logger.error("Opening connection to %s failed: %s", self._settings.safe_url, type(exc).__name__)
            raise ConnectionFailedError(
                f"Could not connect to '{self._settings.safe_url}'.", cause=exc
            ) from exc
        if autocommit:
            try:
                connection.execution_options(isolation_level="AUTOCOMMIT")
            except SQLAlchemyError as exc:
                connection.close()
                raise ConnectionFailedError("Could not enable autocommit on new connection.", cause=exc) from exc
        logger.debug("Opened connection to %s (autocommit=%s)", self._settings.safe_url, autocommit)
        return connection

    def dispose(self) -> None:
        """Release the engine; the next :meth:`open` builds a new one."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None


def _install_credential_filter(engine: Engine) -> None:
    """Attach :class:`_CredentialRedactFilter` to every logger used by *engine*."""
    filt = _CredentialRedactFilter()
    for name in (
        "sqlalchemy.engine",
        "sqlalchemy.pool",
        f"sqlalchemy.engine.Engine.{engine.logging_name or ''}",
    ):
        logging.getLogger(name).addFilter(filt)
