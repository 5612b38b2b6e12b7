"""Minimal observer used to notify the interactive layer of state changes."""

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class Signal:
    """A named list of subscriber callbacks."""

    def __init__(self, name: str):
        self.name = name
        self._callbacks: List[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]) -> None:
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def disconnect(self, callback: Callable[..., Any]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def emit(self, *args: Any) -> None:
        """Call every subscriber; a failing subscriber does not stop the others."""
        for callback in list(self._callbacks):
            try:
                callback(*args)
            except Exception:
                logger.exception("subscriber of %s failed", self.name)

    def __len__(self) -> int:
        return len(self._callbacks)
