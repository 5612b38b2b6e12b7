"""Service layer for device records, user registration and the audit log."""

import logging
from typing import List, Optional

from prometheus_client import Counter
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .auth import UserSession
from .database import Device, LogEntry, Store
from .events import Signal
from .exceptions import PermissionDeniedError
from .export import build_search_filter
from .models.user import User
from .schemas import AuditEntry, DeviceRecord, UserCreate
from .security import hash_password


logger = logging.getLogger(__name__)

DEVICE_ADDED_COUNTER = Counter("devices_added_total", "Total devices added")
DEVICE_UPDATED_COUNTER = Counter("devices_updated_total", "Total devices updated")
DEVICE_REMOVED_COUNTER = Counter("devices_removed_total", "Total device delete statements")
USER_CREATED_COUNTER = Counter("users_created_total", "Total users registered")


def _handle_service_error(session: Session, exc: Exception, action: str) -> None:
    """Rollback the unit of work and log a statement failure."""
    session.rollback()
    logger.error("%s failed", action, exc_info=exc)


def _store_closed(store: Store, action: str) -> bool:
    if store.is_open:
        return False
    logger.error("%s failed: store is not open", action)
    return True


class DeviceRepository:
    """CRUD over the ``devices`` table, scoped by owning user id.

    Mutations return ``True`` on success and ``False`` on any failure; on
    success ``device_list_changed`` is emitted so views can re-read.
    """

    def __init__(self, store: Store):
        self.store = store
        self.device_list_changed = Signal("device_list_changed")

    def add(self, device: DeviceRecord) -> bool:
        logger.info("add device user=%s name=%s", device.user_id, device.name)
        if _store_closed(self.store, "add device"):
            return False
        session: Session = self.store.session()
        try:
            if session.get(User, device.user_id) is None:
                logger.warning(
                    "refusing device %s for unknown user id %s",
                    device.name,
                    device.user_id,
                )
                return False
            row = Device(
                user_id=device.user_id,
                name=device.name,
                type=device.type,
                ip_address=device.ip_address,
                calibration=device.calibration,
            )
            session.add(row)
            session.commit()
            logger.info("created device id=%s user=%s", row.id, device.user_id)
        except SQLAlchemyError as exc:
            _handle_service_error(session, exc, "add device")
            return False
        finally:
            session.close()

        DEVICE_ADDED_COUNTER.inc()
        self.device_list_changed.emit()
        return True

    def list_by_user(self, user_id: int) -> List[DeviceRecord]:
        """Return every device owned by ``user_id``, in storage order."""
        return self.search(user_id, "")

    def search(self, user_id: int, term: str) -> List[DeviceRecord]:
        if _store_closed(self.store, "list devices"):
            return []
        session: Session = self.store.session()
        try:
            rows = (
                session.query(Device)
                .filter(Device.user_id == user_id)
                .filter(build_search_filter(term))
                .all()
            )
            return [DeviceRecord.model_validate(r) for r in rows]
        except (SQLAlchemyError, ValidationError) as exc:
            _handle_service_error(session, exc, "list devices")
            return []
        finally:
            session.close()

    def get(self, device_id: int) -> Optional[DeviceRecord]:
        if _store_closed(self.store, "get device"):
            return None
        session: Session = self.store.session()
        try:
            row = session.get(Device, device_id)
            return DeviceRecord.model_validate(row) if row is not None else None
        except (SQLAlchemyError, ValidationError) as exc:
            _handle_service_error(session, exc, "get device")
            return None
        finally:
            session.close()

    def update(self, device: DeviceRecord) -> bool:
        """Overwrite name, type, IP and calibration; the owner never changes."""
        if device.id == -1:
            logger.warning("update rejected: device %s has no id yet", device.name)
            return False

        logger.info("update device id=%s", device.id)
        if _store_closed(self.store, "update device"):
            return False
        session: Session = self.store.session()
        try:
            session.query(Device).filter(Device.id == device.id).update(
                {
                    Device.name: device.name,
                    Device.type: device.type,
                    Device.ip_address: device.ip_address,
                    Device.calibration: device.calibration,
                },
                synchronize_session=False,
            )
            session.commit()
        except SQLAlchemyError as exc:
            _handle_service_error(session, exc, "update device")
            return False
        finally:
            session.close()

        DEVICE_UPDATED_COUNTER.inc()
        self.device_list_changed.emit()
        return True

    def remove(self, device_id: int) -> bool:
        """Delete by id. Deleting an id that does not exist still succeeds."""
        logger.info("remove device id=%s", device_id)
        if _store_closed(self.store, "remove device"):
            return False
        session: Session = self.store.session()
        try:
            deleted = (
                session.query(Device)
                .filter(Device.id == device_id)
                .delete(synchronize_session=False)
            )
            session.commit()
        except SQLAlchemyError as exc:
            _handle_service_error(session, exc, "remove device")
            return False
        finally:
            session.close()

        if not deleted:
            logger.info("no device with id=%s to remove", device_id)
        DEVICE_REMOVED_COUNTER.inc()
        self.device_list_changed.emit()
        return True


class AuditLog:
    """Append-only log of categorized system events."""

    def __init__(self, store: Store):
        self.store = store

    def append(self, category: str, message: str) -> bool:
        """Insert one timestamped row. Failures are only warned about."""
        if _store_closed(self.store, "write audit entry"):
            return False
        session: Session = self.store.session()
        try:
            session.add(LogEntry(category=category, message=message))
            session.commit()
            return True
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning("could not write audit entry %s: %s", category, exc)
            return False
        finally:
            session.close()

    def recent(self, limit: int = 50) -> List[AuditEntry]:
        if _store_closed(self.store, "read audit log"):
            return []
        session: Session = self.store.session()
        try:
            rows = (
                session.query(LogEntry)
                .order_by(LogEntry.timestamp.desc(), LogEntry.id.desc())
                .limit(limit)
                .all()
            )
            return [AuditEntry.model_validate(r) for r in rows]
        except (SQLAlchemyError, ValidationError) as exc:
            _handle_service_error(session, exc, "read audit log")
            return []
        finally:
            session.close()


def create_user(store: Store, current: UserSession, user: UserCreate) -> bool:
    """Register a new user. Only an administrator session may do this.

    Returns False when the username is already taken or the insert fails.
    """
    if not current.is_admin():
        raise PermissionDeniedError(f"{current.username or 'guest'} may not create users")

    logger.info("create user %s role=%s by %s", user.username, user.role, current.username)
    if _store_closed(store, "create user"):
        return False
    session: Session = store.session()
    try:
        if session.query(User).filter(User.username == user.username).first():
            logger.warning("username %s already registered", user.username)
            return False
        session.add(
            User(
                username=user.username,
                password_hash=hash_password(
                    user.password, iterations=store.settings.password_hash_iterations
                ),
                role=user.role,
            )
        )
        session.commit()
    except SQLAlchemyError as exc:
        _handle_service_error(session, exc, "create user")
        return False
    finally:
        session.close()

    USER_CREATED_COUNTER.inc()
    return True
