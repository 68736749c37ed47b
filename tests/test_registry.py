"""Tests for ScopedConnectionRegistry and connection leases."""

import threading
from unittest.mock import MagicMock

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import OperationalError

from clinic_records.exceptions import IllegalStateError
from clinic_records.registry import Owned, ScopedConnectionRegistry, Shared
from clinic_records.transaction import transaction


class TestCurrent:
    def test_required_without_transaction(self, registry):
        with pytest.raises(IllegalStateError, match="No active transaction"):
            registry.current(required=True)

    def test_optional_without_transaction_returns_owned(self, registry):
        lease = registry.current(required=False)
        assert isinstance(lease, Owned)
        assert lease.owned is True
        with lease as conn:
            assert conn.get_execution_options()["isolation_level"] == "AUTOCOMMIT"
            assert conn.execute(sa.text("SELECT 1")).scalar() == 1
        assert conn.closed

    def test_active_transaction_returns_shared(self, source, registry):
        with transaction(source, registry) as tx:
            for required in (True, False):
                lease = registry.current(required=required)
                assert isinstance(lease, Shared)
                assert lease.owned is False
                with lease as conn:
                    assert conn is tx.connection
                assert not conn.closed

    def test_owned_release_logs_close_failure(self, caplog):
        conn = MagicMock()
        conn.close.side_effect = OperationalError("close", {}, Exception("broken pipe"))
        Owned(conn).release()
        assert "Closing ad-hoc connection failed" in caplog.text


class TestBeginEnd:
    def test_begin_twice_on_same_thread(self, registry):
        registry.begin(MagicMock())
        try:
            with pytest.raises(IllegalStateError, match="already active"):
                registry.begin(MagicMock())
        finally:
            registry.end()

    def test_end_is_idempotent(self, registry):
        registry.begin(MagicMock())
        registry.end()
        registry.end()
        assert registry.is_active() is False

    def test_custom_identity(self, source):
        key = {"value": "request-1"}
        registry = ScopedConnectionRegistry(source, identity=lambda: key["value"])
        conn = MagicMock()
        registry.begin(conn)
        key["value"] = "request-2"
        assert registry.is_active() is False
        key["value"] = "request-1"
        assert registry.current(required=True).connection is conn
        registry.end()


class TestThreadIsolation:
    def test_two_threads_see_only_their_own_connection(self, registry):
        barrier = threading.Barrier(2)
        seen: dict[str, object] = {}
        errors: list[BaseException] = []

        def worker(name: str) -> None:
            conn = MagicMock(name=name)
            try:
                registry.begin(conn)
                barrier.wait(timeout=5)
                seen[name] = registry.current(required=True).connection is conn
                barrier.wait(timeout=5)
                registry.end()
            except BaseException as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []
        assert seen == {"a": True, "b": True}
        assert registry.is_active() is False

    def test_transaction_on_one_thread_does_not_leak(self, source, registry):
        result: dict[str, object] = {}
        ready = threading.Event()
        done = threading.Event()

        def other() -> None:
            ready.wait(timeout=5)
            result["active"] = registry.is_active()
            try:
                registry.current(required=True)
            except IllegalStateError:
                result["required_raised"] = True
            done.set()

        thread = threading.Thread(target=other)
        thread.start()
        with transaction(source, registry):
            ready.set()
            done.wait(timeout=5)
        thread.join(timeout=10)

        assert result == {"active": False, "required_raised": True}
