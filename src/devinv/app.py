"""Wiring of store, session, repository and audit log for one running process."""

import logging
from pathlib import Path
from typing import List, Optional, Union

from .auth import UserSession
from .config import Settings
from .database import Store
from .exceptions import NotLoggedInError
from .export import (
    DEVICE_EXPORT_HEADERS,
    device_rows,
    export_to_delimited_text,
    write_export,
)
from .schemas import DeviceForm, DeviceRecord, UserCreate
from .services import AuditLog, DeviceRepository, create_user

logger = logging.getLogger(__name__)


class InventoryApp:
    """Everything the interactive layer talks to.

    Owner ids for device operations always come from ``self.session``.
    """

    def __init__(
        self,
        path: Union[str, Path, None] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = Store(path, settings=settings)
        self.session = UserSession(self.store)
        self.devices = DeviceRepository(self.store)
        self.audit = AuditLog(self.store)
        self.session.logged_in_signal.connect(self._audit_login)

    def open(self) -> "InventoryApp":
        self.store.open()
        return self

    def close(self) -> None:
        self.session.logout()
        self.store.close()

    def __enter__(self) -> "InventoryApp":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _audit_login(self, username: str, role: str) -> None:
        self._audit("Login", f"User {username} logged in.")

    def _audit(self, category: str, message: str) -> None:
        if not self.audit.append(category, message):
            logger.warning("audit entry %s was not recorded", category)

    def logout(self) -> None:
        username = self.session.username
        if self.session.logged_in:
            self.session.logout()
            self._audit("Logout", f"User {username} logged out.")

    def _require_login(self) -> int:
        if not self.session.logged_in:
            raise NotLoggedInError("log in first")
        return self.session.get_id()

    def my_devices(self, search: str = "") -> List[DeviceRecord]:
        return self.devices.search(self._require_login(), search)

    def add_device(self, form: DeviceForm) -> bool:
        return self.devices.add(form.to_record(self._require_login()))

    def update_device(self, device_id: int, form: DeviceForm) -> bool:
        """Update one of the session user's devices; foreign ids are refused."""
        owner = self._require_login()
        current = self.devices.get(device_id)
        if current is None or current.user_id != owner:
            logger.warning("device %s is not owned by user %s", device_id, owner)
            return False
        return self.devices.update(form.to_record(owner, device_id=device_id))

    def remove_device(self, device_id: int) -> bool:
        owner = self._require_login()
        current = self.devices.get(device_id)
        if current is not None and current.user_id != owner:
            logger.warning("device %s is not owned by user %s", device_id, owner)
            return False
        return self.devices.remove(device_id)

    def register_user(self, user: UserCreate) -> bool:
        created = create_user(self.store, self.session, user)
        if created:
            self._audit("Users", f"User {user.username} created by {self.session.username}.")
        return created

    def export_devices(self, path: Union[str, Path], search: str = "") -> Optional[Path]:
        """Write the session user's (filtered) devices; None when there is nothing to export."""
        records = self.my_devices(search)
        if not records:
            return None
        settings = self.store.settings
        text = export_to_delimited_text(
            device_rows(records),
            DEVICE_EXPORT_HEADERS,
            delimiter=settings.export_delimiter,
            replacement=settings.export_replacement,
        )
        return write_export(path, text)
