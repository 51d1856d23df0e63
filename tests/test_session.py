"""
Tests for the admin login gate.
"""
import pytest

from config import Settings
from conftest import put_raw
from errors import CorruptedStateError
from seed import ADMIN_KEY, SESSION_KEY
from session import SessionGate


def test_seeded_credentials(seeded_store):
    gate = SessionGate(seeded_store)

    assert gate.authenticate("admin@school.com", "admin123")
    assert seeded_store.get(SESSION_KEY) == "mock-jwt-token"
    assert gate.is_authenticated()


def test_wrong_password_writes_nothing(seeded_store):
    gate = SessionGate(seeded_store)

    assert not gate.authenticate("admin@school.com", "wrong")
    assert seeded_store.get(SESSION_KEY) is None
    assert not gate.is_authenticated()


def test_email_must_match_exactly(seeded_store):
    assert not SessionGate(seeded_store).authenticate("Admin@school.com", "admin123")


def test_logout(seeded_store):
    gate = SessionGate(seeded_store)
    gate.authenticate("admin@school.com", "admin123")

    gate.logout()

    assert SESSION_KEY not in seeded_store.keys()
    assert not gate.is_authenticated()


def test_no_admin_record(store):
    gate = SessionGate(store)
    assert gate.admin() is None
    assert not gate.authenticate("admin@school.com", "admin123")


def test_malformed_admin_record_is_restored(store):
    store.set(ADMIN_KEY, ["admin@school.com", "admin123"])
    assert SessionGate(store).authenticate("admin@school.com", "admin123")
    assert store.get(ADMIN_KEY) == {"email": "admin@school.com", "password": "admin123"}


class TestCorruptedState:
    def test_admin_record_is_rewritten_from_settings(self, seeded_store):
        settings = Settings(_env_file=None, ADMIN_EMAIL="office@school.com", ADMIN_PASSWORD="pw")
        put_raw(seeded_store, ADMIN_KEY, "{bad")
        gate = SessionGate(seeded_store, settings=settings)

        assert gate.authenticate("office@school.com", "pw")
        assert seeded_store.get(ADMIN_KEY) == {"email": "office@school.com", "password": "pw"}

    def test_admin_record_under_raise_policy(self, seeded_store):
        put_raw(seeded_store, ADMIN_KEY, "{bad")
        gate = SessionGate(seeded_store, on_corrupt="raise")

        with pytest.raises(CorruptedStateError) as exc:
            gate.authenticate("admin@school.com", "admin123")
        assert exc.value.key == ADMIN_KEY
        assert seeded_store.get(SESSION_KEY) is None

    def test_broken_session_marker_is_cleared(self, seeded_store):
        put_raw(seeded_store, SESSION_KEY, "{bad")
        gate = SessionGate(seeded_store)

        assert not gate.is_authenticated()
        assert SESSION_KEY not in seeded_store.keys()

    def test_broken_session_marker_under_raise_policy(self, seeded_store):
        put_raw(seeded_store, SESSION_KEY, "{bad")
        with pytest.raises(CorruptedStateError):
            SessionGate(seeded_store, on_corrupt="raise").is_authenticated()


def test_custom_marker(seeded_store):
    gate = SessionGate(seeded_store, marker="local-session")
    gate.authenticate("admin@school.com", "admin123")
    assert seeded_store.get(SESSION_KEY) == "local-session"
