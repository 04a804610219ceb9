"""Lifecycle controller: the owner of cart and session state."""

import logging
from collections import deque
from decimal import Decimal
from enum import Enum
from typing import Any, Callable

from .config import Settings
from .context import TableContext
from .errors import InvalidTransitionError, RestaurantRequiredError, TransportError
from .gateway import MenuCatalog, OrderGateway, SessionOracle
from .menu import ALL_CATEGORIES, filter_products
from .models import CartLine, Notice, OrderStatus, PaymentMethod, Product, Restaurant, SubmitResult, Ticket, money
from .monitor import SessionMonitor
from .scan import parse_restaurant_payload
from .session import validate_pin
from .submitter import OrderSubmitter

logger = logging.getLogger(__name__)

MAX_PENDING_NOTICES = 50


class Phase(Enum):
    """Visible lifecycle phases. A full reset (closed) reads back as GUEST."""

    GUEST = "guest"
    SCANNING = "scanning"
    ACTIVE_TABLE = "active-table"
    ORDER_PLACED = "order-placed"
    AWAITING_PAYMENT = "awaiting-payment"


class Screen(Enum):
    HOME = "home"
    QR_SCANNER = "qr-scanner"
    MENU = "menu"
    CART = "cart"
    ORDER_DETAILS = "order-details"
    PAYMENT = "payment"


GUEST_SCREENS = frozenset({Screen.HOME, Screen.QR_SCANNER, Screen.MENU, Screen.CART})
TABLE_SCREENS = frozenset({Screen.HOME, Screen.MENU, Screen.CART, Screen.ORDER_DETAILS, Screen.PAYMENT})


def reachable_screens(pin_set: bool, order_status: str | None) -> frozenset[Screen]:
    """Screens the presentation layer may show for a session state."""
    if not pin_set:
        return GUEST_SCREENS
    if order_status == OrderStatus.AWAITING_PAYMENT.value:
        # Bill already requested
        return TABLE_SCREENS - {Screen.PAYMENT}
    return TABLE_SCREENS


def phase_for(pin_set: bool, order_status: str | None, scanning: bool = False) -> Phase:
    if not pin_set:
        return Phase.SCANNING if scanning else Phase.GUEST
    if order_status == OrderStatus.AWAITING_PAYMENT.value:
        return Phase.AWAITING_PAYMENT
    if order_status == OrderStatus.ACTIVE.value:
        return Phase.ORDER_PLACED
    return Phase.ACTIVE_TABLE


class LifecycleController:
    """Sequences scanning, ordering and session exit for one client.

    The controller is the only holder of the TableContext. The monitor and
    the submitter get the same context instance; callers only see copies.
    """

    def __init__(
        self,
        oracle: SessionOracle,
        gateway: OrderGateway,
        menu_catalog: MenuCatalog | None = None,
        settings: Settings | None = None,
        on_notice: Callable[[Notice], None] | None = None,
    ):
        self.settings = settings or Settings()
        self._on_notice = on_notice
        self._notices: deque[Notice] = deque(maxlen=MAX_PENDING_NOTICES)
        self._context = TableContext(notify=self._push_notice)
        self._scanning = False
        self._menu_catalog = menu_catalog
        self.monitor = SessionMonitor(self._context, oracle, interval=self.settings.poll_interval)
        self.submitter = OrderSubmitter(
            self._context,
            gateway,
            min_pin_length=self.settings.min_pin_length,
            on_settled=self.monitor.request_immediate_check,
        )
        self._context.session.add_pin_listener(self._on_pin_change)

    @classmethod
    def connect(cls, settings: Settings | None = None, **kwargs: Any) -> "LifecycleController":
        """Create a controller talking to the restaurant backend over HTTP."""
        from .http_gateway import HttpBackend

        settings = settings or Settings.from_env()
        backend = HttpBackend(settings.api_url, timeout=settings.http_timeout)
        return cls(backend, backend, backend, settings=settings, **kwargs)

    def _push_notice(self, notice: Notice) -> None:
        self._notices.append(notice)
        if self._on_notice is not None:
            self._on_notice(notice)

    def _on_pin_change(self, old_pin: str | None, new_pin: str | None) -> None:
        self._scanning = False

    # Read-only views

    @property
    def phase(self) -> Phase:
        with self._context.lock:
            return phase_for(self._context.session.active, self._context.order_status, self._scanning)

    @property
    def screens(self) -> frozenset[Screen]:
        with self._context.lock:
            return reachable_screens(self._context.session.active, self._context.order_status)

    def can_reach(self, screen: Screen) -> bool:
        return screen in self.screens

    @property
    def pin(self) -> str | None:
        return self._context.session.pin

    @property
    def table_id(self) -> str | None:
        return self._context.session.table_id

    @property
    def restaurant(self) -> Restaurant | None:
        return self._context.session.restaurant

    @property
    def order_status(self) -> str | None:
        return self._context.order_status

    @property
    def cart_lines(self) -> list[CartLine]:
        return self._context.cart.lines

    @property
    def cart_total(self) -> Decimal:
        return self._context.cart.total

    @property
    def cart_items(self) -> int:
        return self._context.cart.total_items

    def drain_notices(self) -> list[Notice]:
        """Return and forget the notices not yet shown."""
        with self._context.lock:
            notices = list(self._notices)
            self._notices.clear()
            return notices

    def snapshot(self) -> dict[str, Any]:
        with self._context.lock:
            return {
                "phase": self.phase.value,
                "screens": sorted(s.value for s in self.screens),
                "session": self._context.session.to_dict(),
                "order_status": self._context.order_status,
                "cart": self._context.cart.to_dict(),
                "monitoring": self.monitor.running,
            }

    # Scanning

    def begin_scan(self) -> None:
        with self._context.lock:
            if self._context.session.active:
                raise InvalidTransitionError("scan a restaurant code", "a table session is active")
            self._scanning = True

    def cancel_scan(self) -> None:
        with self._context.lock:
            self._scanning = False

    def handle_scan(self, payload: str | bytes | dict[str, Any]) -> Restaurant:
        """
        Bind the restaurant from a decoded QR payload and return to guest mode.

        Raises:
            InvalidQRPayloadError: If the payload is not a restaurant code. The
                session is untouched and scanning continues.
            InvalidTransitionError: If a table session is active.
        """
        restaurant = parse_restaurant_payload(payload)
        with self._context.lock:
            if self._context.session.active:
                raise InvalidTransitionError("scan a restaurant code", "a table session is active")
            self._context.session.bind(restaurant)
            self._scanning = False
        return restaurant

    # Menu and cart

    def load_menu(self, query: str = "", category: str = ALL_CATEGORIES) -> list[Product]:
        """
        Fetch the bound restaurant's menu, optionally filtered.

        Raises:
            RestaurantRequiredError: If no restaurant is bound or no catalog
                was configured.
            TransportError: On network failure or timeout.
        """
        restaurant = self._context.session.restaurant
        if restaurant is None or self._menu_catalog is None:
            raise RestaurantRequiredError()
        products = self._menu_catalog.fetch_menu(restaurant.id)
        return filter_products(products, query, category)

    def add_to_cart(self, product: Product, quantity: int = 1, notes: str = "") -> CartLine:
        return self._context.cart.add_to_cart(product, quantity, notes)

    def update_quantity(self, product_id: str, delta: int, notes: str = "") -> CartLine | None:
        return self._context.cart.update_quantity(product_id, delta, notes)

    def remove_from_cart(self, product_id: str, notes: str = "") -> bool:
        return self._context.cart.remove_from_cart(product_id, notes)

    def clear_cart(self) -> None:
        self._context.cart.clear()

    # Table session

    def enter_pin(self, pin: str) -> str:
        """
        Bind a table PIN typed by the diner.

        Raises:
            InvalidPinError: If the PIN is malformed.
        """
        normalized = validate_pin(pin, self.settings.min_pin_length)
        self._context.session.set_pin(normalized)
        return normalized

    def submit_order(self, pin: str | None = None) -> SubmitResult:
        """Send the cart. See OrderSubmitter.submit for the failure modes."""
        return self.submitter.submit(pin)

    def request_bill(self, payment_method: str | PaymentMethod) -> Ticket | None:
        """
        Ask for the bill, then refresh the ticket so the phase follows the server.

        A failed refresh after a successful request is logged and reported as
        None; the request itself went through.
        """
        self.submitter.request_bill(payment_method)
        try:
            return self.submitter.fetch_ticket()
        except TransportError as e:
            logger.warning("Could not refresh ticket after bill request: %s", e)
            return None

    def refresh_ticket(self) -> Ticket | None:
        return self.submitter.fetch_ticket()

    def exit_session(self) -> None:
        """Leave the table: clears PIN, table, restaurant and cart."""
        with self._context.lock:
            self._scanning = False
            self._context.full_reset()

    def close(self, timeout: float | None = 1.0) -> None:
        """Stop background polling. State is left as is."""
        self.monitor.stop()
        self.monitor.join(timeout)

    def __enter__(self) -> "LifecycleController":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"LifecycleController(phase={self.phase.value}, pin={self.pin!r}, "
            f"items={self.cart_items}, total={money(self.cart_total)})"
        )
