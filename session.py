"""
Login gate for the admin console.

Credentials are compared in plain text against the single stored admin
record. That is only acceptable for a local demo profile; nothing here is
hashed, salted or expired.

An unreadable admin record or session marker follows the corrupt-state
policy: under "reseed" the admin record is rewritten from settings and a
broken marker is cleared (the admin must log in again); under "raise" the
CorruptedStateError propagates.
"""
import logging
from typing import Any, Optional

from database import KeyValueStore
from errors import CorruptedStateError
from schemas import AdminCredentials
from seed import ADMIN_KEY, SESSION_KEY, reseed_admin

logger = logging.getLogger(__name__)


class SessionGate:
    def __init__(
        self,
        store: KeyValueStore,
        marker: str = "mock-jwt-token",
        settings=None,
        on_corrupt: str = "reseed",
    ):
        self.store = store
        self.marker = marker
        self.settings = settings
        self.on_corrupt = on_corrupt

    def _read_admin(self) -> Optional[Any]:
        record = self.store.get(ADMIN_KEY)
        if record is not None and not isinstance(record, dict):
            raise CorruptedStateError(ADMIN_KEY, "expected an object")
        return record

    def admin(self) -> Optional[AdminCredentials]:
        try:
            record = self._read_admin()
        except CorruptedStateError as e:
            if self.on_corrupt != "reseed":
                raise
            logger.warning("%s; restoring the admin record", e)
            reseed_admin(self.store, self.settings)
            record = self._read_admin()
        if record is None:
            return None
        return AdminCredentials(
            email=str(record.get("email", "")),
            password=str(record.get("password", "")),
        )

    def authenticate(self, email: str, password: str) -> bool:
        admin = self.admin()
        if admin is None or email != admin.email or password != admin.password:
            logger.warning("Failed login attempt for %s", email)
            return False
        self.store.set(SESSION_KEY, self.marker)
        logger.info("Admin %s logged in", email)
        return True

    def is_authenticated(self) -> bool:
        try:
            return bool(self.store.get(SESSION_KEY))
        except CorruptedStateError as e:
            if self.on_corrupt != "reseed":
                raise
            logger.warning("%s; clearing the session", e)
            self.store.clear(SESSION_KEY)
            return False

    def logout(self) -> None:
        self.store.clear(SESSION_KEY)
        logger.info("Admin logged out")
