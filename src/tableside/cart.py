"""In-memory cart keyed by (product, notes)."""

from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Any

from .errors import InvalidQuantityError
from .models import CartLine, Product, money

logger = logging.getLogger(__name__)


class CartStore:
    """Holds the diner's cart lines for the lifetime of the process.

    Totals are derived from the line list on every read and never cached.
    All operations take ``lock``, which the owning context shares with the
    session so that cart and session mutations never interleave.
    """

    def __init__(self, lock: threading.RLock | None = None):
        self._lock = lock or threading.RLock()
        self._lines: list[CartLine] = []

    def _find(self, product_id: str, notes: str) -> CartLine | None:
        for line in self._lines:
            if line.product_id == product_id and line.notes == notes:
                return line
        return None

    def add_to_cart(self, product: Product, quantity: int = 1, notes: str = "") -> CartLine:
        """
        Add ``quantity`` units of ``product`` with ``notes``.

        Merges into the existing line with the same (product_id, notes) key,
        otherwise appends a new line.

        Returns:
            A copy of the resulting line.

        Raises:
            InvalidQuantityError: If quantity is below 1.
        """
        if quantity < 1:
            raise InvalidQuantityError(quantity)
        notes = notes or ""
        with self._lock:
            line = self._find(product.product_id, notes)
            if line is not None:
                line.quantity += quantity
            else:
                line = CartLine(
                    product_id=product.product_id,
                    display_name=product.name,
                    unit_price=product.unit_price,
                    notes=notes,
                    quantity=quantity,
                )
                self._lines.append(line)
            logger.debug("Cart %s x%d -> %d", line.key, quantity, line.quantity)
            return line.copy()

    def update_quantity(self, product_id: str, delta: int, notes: str = "") -> CartLine | None:
        """
        Change the quantity of a line by ``delta``.

        A change that would leave the line below 1 is ignored; lines are only
        ever deleted by remove_from_cart. A missing line is a no-op.

        Returns:
            A copy of the line after the call, or None if no line matched.
        """
        notes = notes or ""
        with self._lock:
            line = self._find(product_id, notes)
            if line is None:
                return None
            new_quantity = line.quantity + delta
            if new_quantity >= 1:
                line.quantity = new_quantity
            return line.copy()

    def remove_from_cart(self, product_id: str, notes: str = "") -> bool:
        """Remove the matching line. Returns True if a line was removed."""
        notes = notes or ""
        with self._lock:
            line = self._find(product_id, notes)
            if line is None:
                return False
            self._lines.remove(line)
            return True

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def get_line(self, product_id: str, notes: str = "") -> CartLine | None:
        with self._lock:
            line = self._find(product_id, notes or "")
            return line.copy() if line is not None else None

    @property
    def lines(self) -> list[CartLine]:
        """Snapshot of the lines in insertion order."""
        with self._lock:
            return [line.copy() for line in self._lines]

    @property
    def total(self) -> Decimal:
        with self._lock:
            return sum((line.subtotal for line in self._lines), Decimal("0"))

    @property
    def total_items(self) -> int:
        with self._lock:
            return sum(line.quantity for line in self._lines)

    @property
    def line_count(self) -> int:
        with self._lock:
            return len(self._lines)

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._lines

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "lines": [line.to_dict() for line in self._lines],
                "total": str(money(self.total)),
                "total_items": self.total_items,
            }
