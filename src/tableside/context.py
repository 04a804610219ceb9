"""The single owned object holding cart and session state."""

import logging
import threading
from typing import Callable

from .cart import CartStore
from .models import Notice
from .session import SessionState

logger = logging.getLogger(__name__)


class TableContext:
    """Cart, session and the coordination flags shared by monitor and submitter.

    One re-entrant lock guards everything here. The controller creates the
    context and passes it explicitly to the components that need it; no
    component keeps a copy of the cart or the session.
    """

    def __init__(self, notify: Callable[[Notice], None] | None = None):
        self.lock = threading.RLock()
        self.cart = CartStore(self.lock)
        self.session = SessionState(self.lock)
        self._notify = notify
        self._submitting_pin: str | None = None
        self._deferred_invalidation: str | None = None
        self._order_status: str | None = None
        self.session.add_pin_listener(self._on_pin_change)

    def _on_pin_change(self, old_pin: str | None, new_pin: str | None) -> None:
        # Server order state belongs to the session that reported it.
        self._order_status = None
        self._deferred_invalidation = None

    def notify(self, notice: Notice) -> None:
        if self._notify is not None:
            self._notify(notice)

    @property
    def order_status(self) -> str | None:
        with self.lock:
            return self._order_status

    def record_order_status(self, pin: str, status: str | None) -> None:
        """Remember the server-reported order status if ``pin`` is still bound."""
        with self.lock:
            if self.session.pin == pin:
                self._order_status = status

    # Submission tracking

    def begin_submission(self, pin: str) -> bool:
        """Mark a submission in flight. Returns False if one already is."""
        with self.lock:
            if self._submitting_pin is not None:
                return False
            self._submitting_pin = pin
            return True

    def end_submission(self) -> bool:
        """
        Clear the in-flight marker.

        Returns:
            True if an invalidation was deferred during the submission and the
            session should be re-checked now.
        """
        with self.lock:
            self._submitting_pin = None
            deferred = self._deferred_invalidation is not None
            self._deferred_invalidation = None
            return deferred

    @property
    def submission_in_flight(self) -> bool:
        with self.lock:
            return self._submitting_pin is not None

    def defer_invalidation(self, pin: str) -> bool:
        """
        Park an invalidation for ``pin`` while its submission is in flight.

        Returns:
            True if the invalidation was deferred, False if nothing is in
            flight for that PIN and the caller should act on it.
        """
        with self.lock:
            if self._submitting_pin is None or self._submitting_pin != pin:
                return False
            self._deferred_invalidation = pin
            return True

    # Resets

    def full_reset(self) -> None:
        """Clear PIN, table id, restaurant and every cart line together."""
        with self.lock:
            self.cart.clear()
            self.session.full_reset()
            self._order_status = None
            logger.info("Full reset: back to guest mode")

    def invalidate(self, pin: str, notice: Notice) -> bool:
        """
        Apply a server-side session invalidation for ``pin``.

        Does nothing if the session has moved on to another PIN (or none)
        since the check started, which makes repeated invalidations of the
        same session no-ops.

        Returns:
            True if the reset was performed.
        """
        with self.lock:
            if self.session.pin != pin:
                return False
            self.notify(notice)
            self.full_reset()
            return True
