"""Table session state: restaurant, PIN and assigned table."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from .config import DEFAULT_MIN_PIN_LENGTH
from .errors import InvalidPinError
from .models import Restaurant

logger = logging.getLogger(__name__)

PinListener = Callable[[str | None, str | None], None]


def validate_pin(pin: str | None, min_length: int = DEFAULT_MIN_PIN_LENGTH) -> str:
    """
    Normalize and check a PIN typed by the diner.

    Returns:
        The PIN with surrounding whitespace stripped.

    Raises:
        InvalidPinError: If the PIN is missing, not all digits, or too short.
    """
    if pin is None:
        raise InvalidPinError(pin, "PIN is required")
    normalized = str(pin).strip()
    if not normalized:
        raise InvalidPinError(pin, "PIN is required")
    if not normalized.isdigit():
        raise InvalidPinError(pin, "PIN must contain digits only")
    if len(normalized) < min_length:
        raise InvalidPinError(pin, f"PIN too short (minimum {min_length} digits)")
    return normalized


class SessionState:
    """The bound restaurant, table PIN and server-assigned table id.

    ``pin`` is the single discriminant between guest mode (None) and active
    table mode. Listeners registered with add_pin_listener are called with
    (old_pin, new_pin) on every change of the PIN while the lock is held,
    so they must not block.
    """

    def __init__(self, lock: threading.RLock | None = None):
        self._lock = lock or threading.RLock()
        self._restaurant: Restaurant | None = None
        self._pin: str | None = None
        self._table_id: str | None = None
        self._listeners: list[PinListener] = []

    def add_pin_listener(self, listener: PinListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def _change_pin(self, new_pin: str | None) -> None:
        old_pin = self._pin
        if old_pin == new_pin:
            return
        self._pin = new_pin
        if new_pin is None:
            logger.info("Table session released")
        else:
            logger.info("Table session bound to PIN %s", new_pin)
        for listener in list(self._listeners):
            listener(old_pin, new_pin)

    @property
    def restaurant(self) -> Restaurant | None:
        with self._lock:
            return self._restaurant

    @property
    def pin(self) -> str | None:
        with self._lock:
            return self._pin

    @property
    def table_id(self) -> str | None:
        with self._lock:
            return self._table_id

    @property
    def active(self) -> bool:
        """True in active table mode."""
        with self._lock:
            return self._pin is not None

    def bind(self, restaurant: Restaurant) -> None:
        """Set the restaurant identity. Does not imply a PIN."""
        with self._lock:
            self._restaurant = restaurant
            logger.info("Bound restaurant %s (%s)", restaurant.id, restaurant.display_name)

    def set_pin(self, pin: str) -> None:
        """Bind a table session. Leaves table_id alone."""
        with self._lock:
            self._change_pin(pin)

    def clear_pin(self) -> None:
        """Release the table session; the table id goes with it."""
        with self._lock:
            self._table_id = None
            self._change_pin(None)

    def set_table_id(self, table_id: str) -> bool:
        """
        Record the table assigned by the server.

        Returns:
            False (and changes nothing) when no PIN is bound.
        """
        with self._lock:
            if self._pin is None:
                logger.warning("Ignoring table id %s: no table session bound", table_id)
                return False
            self._table_id = table_id
            return True

    def full_reset(self) -> None:
        """Clear PIN, table id and restaurant together."""
        with self._lock:
            self._table_id = None
            self._restaurant = None
            self._change_pin(None)

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "restaurant": self._restaurant.to_dict() if self._restaurant else None,
                "pin": self._pin,
                "table_id": self._table_id,
            }
