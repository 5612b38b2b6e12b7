import logging
from typing import Iterable, Optional

from prometheus_client import Counter
from sqlalchemy.exc import SQLAlchemyError

from .database import Store
from .events import Signal
from .models.user import User
from .security import verify_password

logger = logging.getLogger(__name__)

GUEST_ID = -1
GUEST_ROLE = "Guest"

LOGIN_COUNTER = Counter("login_attempts_total", "Login attempts", ["outcome"])


def _find_user(store: Store, username: str) -> Optional[User]:
    session = store.session()
    try:
        return session.query(User).filter(User.username == username).first()
    finally:
        session.close()


def validate_credentials(store: Store, username: str, password: str) -> bool:
    """Return True when ``password`` matches the stored hash for ``username``.

    An unknown username and a wrong password are indistinguishable to the caller.
    """
    if not store.is_open:
        logger.error("credential check failed: store is not open")
        return False
    try:
        user = _find_user(store, username)
    except SQLAlchemyError:
        logger.exception("credential lookup failed for %s", username)
        return False
    if user is None:
        return False
    return verify_password(password, user.password_hash)


def is_admin_role(role: Optional[str], admin_roles: Iterable[str]) -> bool:
    """Case-insensitive, whitespace-trimmed comparison against ``admin_roles``."""
    if not role:
        return False
    return role.strip().casefold() in {r.strip().casefold() for r in admin_roles}


class UserSession:
    """The currently authenticated identity, passed explicitly to callers.

    Starts in the guest state (``id == -1``, role ``"Guest"``) and returns to
    it on logout. ``logged_in`` listeners receive ``(username, role)``;
    ``logged_out`` listeners receive nothing.
    """

    def __init__(self, store: Store):
        self.store = store
        self.logged_in_signal = Signal("logged_in")
        self.logged_out_signal = Signal("logged_out")
        self.clear()

    def clear(self) -> None:
        self.id = GUEST_ID
        self.username = ""
        self.role = GUEST_ROLE
        self.logged_in = False

    def login(self, username: str, password: str) -> bool:
        self.clear()
        if not self.store.is_open:
            logger.error("login failed for %s: store is not open", username)
            LOGIN_COUNTER.labels(outcome="error").inc()
            return False
        try:
            user = _find_user(self.store, username)
        except SQLAlchemyError:
            logger.exception("login query failed for %s", username)
            LOGIN_COUNTER.labels(outcome="error").inc()
            return False

        if user is None or not verify_password(password, user.password_hash):
            logger.info("rejected login for %s", username)
            LOGIN_COUNTER.labels(outcome="rejected").inc()
            return False

        self.id = user.id
        self.username = user.username
        self.role = user.role
        self.logged_in = True
        LOGIN_COUNTER.labels(outcome="success").inc()
        logger.info("user %s logged in with role %s", self.username, self.role)
        self.logged_in_signal.emit(self.username, self.role)
        return True

    def logout(self) -> None:
        if not self.logged_in:
            return
        username = self.username
        self.clear()
        logger.info("user %s logged out", username)
        self.logged_out_signal.emit()

    def is_admin(self) -> bool:
        return is_admin_role(self.role, self.store.settings.admin_roles)

    def get_id(self) -> int:
        return self.id if self.logged_in else GUEST_ID

    def update_profile(self, new_role: str) -> None:
        """Change the in-memory role only; nothing is written to the store."""
        self.role = new_role

    def __repr__(self) -> str:
        return f"UserSession(id={self.id}, username={self.username!r}, role={self.role!r})"
