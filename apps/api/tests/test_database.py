"""
Tests for session management: connection retries, commit/rollback around a
request, and the health check.
"""
import logging
import pytest
from types import SimpleNamespace

from sqlalchemy.exc import OperationalError

import core.database as database
from core.exceptions import NotFoundError


class _FakeSession:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def execute(self, statement):
        self.calls.append("execute")
        if self.fail:
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    def commit(self):
        self.calls.append("commit")

    def rollback(self):
        self.calls.append("rollback")

    def close(self):
        self.calls.append("close")


@pytest.fixture
def sessions(monkeypatch):
    """Queue of fake sessions handed out by SessionLocal; backoff sleeps are recorded."""
    queue = []
    sleeps = []
    monkeypatch.setattr(database, "SessionLocal", lambda: queue.pop(0))
    monkeypatch.setattr(database, "time", SimpleNamespace(sleep=sleeps.append))
    return SimpleNamespace(queue=queue, sleeps=sleeps)


class TestGetDb:

    def test_retries_with_backoff_then_commits(self, sessions):
        broken, flaky, healthy = _FakeSession(fail=True), _FakeSession(fail=True), _FakeSession()
        sessions.queue.extend([broken, flaky, healthy])

        gen = database.get_db()
        assert next(gen) is healthy
        with pytest.raises(StopIteration):
            next(gen)

        assert sessions.sleeps == [0.1, 0.2]
        assert broken.calls == ["execute", "close"]
        assert healthy.calls == ["execute", "commit", "close"]

    def test_gives_up_after_three_attempts(self, sessions):
        sessions.queue.extend([_FakeSession(fail=True) for _ in range(3)])

        with pytest.raises(OperationalError):
            next(database.get_db())

        assert sessions.sleeps == [0.1, 0.2]
        assert sessions.queue == []

    def test_error_during_request_rolls_back(self, sessions, caplog):
        session = _FakeSession()
        sessions.queue.append(session)

        gen = database.get_db()
        next(gen)
        with caplog.at_level(logging.ERROR, logger="core.database"):
            with pytest.raises(RuntimeError):
                gen.throw(RuntimeError("constraint violated"))

        assert session.calls == ["execute", "rollback", "close"]
        assert "Database transaction error" in caplog.text

    def test_api_errors_roll_back_without_error_log(self, sessions, caplog):
        session = _FakeSession()
        sessions.queue.append(session)

        gen = database.get_db()
        next(gen)
        with caplog.at_level(logging.ERROR, logger="core.database"):
            with pytest.raises(NotFoundError):
                gen.throw(NotFoundError("Project", "42"))

        assert session.calls == ["execute", "rollback", "close"]
        assert not [r for r in caplog.records if r.name == "core.database"]


class TestCheckDbConnection:

    def test_healthy(self, db_session):
        assert database.check_db_connection() is True

    def test_unreachable_database(self, monkeypatch):
        class _DownEngine:
            def connect(self):
                raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        monkeypatch.setattr(database, "engine", _DownEngine())

        assert database.check_db_connection() is False
