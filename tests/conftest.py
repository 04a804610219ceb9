"""Pytest fixtures for tableside tests."""

import threading
import time
from collections import deque
from decimal import Decimal

import pytest

from tableside.config import Settings
from tableside.context import TableContext
from tableside.lifecycle import LifecycleController
from tableside.models import (
    BillResponse,
    OrderResponse,
    Product,
    SessionCheck,
    Ticket,
    TicketItem,
    TicketResponse,
)


class FakeOracle:
    """Session oracle answering from a script, then with ``default``.

    Script entries are SessionCheck instances or exceptions to raise.
    """

    def __init__(self):
        self.answers: deque = deque()
        self.default = SessionCheck(valid=True)
        self.calls: list[str] = []
        self.gate: threading.Event | None = None
        self.entered = threading.Event()

    def script(self, *answers) -> None:
        self.answers.extend(answers)

    def check_session(self, pin: str) -> SessionCheck:
        self.calls.append(pin)
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        answer = self.answers.popleft() if self.answers else self.default
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeGateway:
    """Order gateway and menu catalog recording every call."""

    def __init__(self):
        self.order_responses: deque = deque()
        self.bill_responses: deque = deque()
        self.ticket_responses: deque = deque()
        self.menu: list[Product] = []
        self.payloads = []
        self.bill_requests = []
        self.ticket_requests = []
        self.menu_requests = []
        self.gate: threading.Event | None = None
        self.entered = threading.Event()

    @staticmethod
    def _next(queue: deque, default):
        answer = queue.popleft() if queue else default
        if isinstance(answer, Exception):
            raise answer
        return answer

    def submit_order(self, payload):
        self.payloads.append(payload)
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        return self._next(self.order_responses, OrderResponse(ok=True, table="7", status=200))

    def request_bill(self, pin, payment_method):
        self.bill_requests.append((pin, payment_method))
        return self._next(self.bill_responses, BillResponse(ok=True, status=200))

    def fetch_ticket(self, pin):
        self.ticket_requests.append(pin)
        return self._next(self.ticket_responses, TicketResponse(active=False))

    def fetch_menu(self, restaurant_id):
        self.menu_requests.append(restaurant_id)
        return list(self.menu)


def make_ticket(order_status: str = "active") -> Ticket:
    return Ticket(
        restaurant="La Cocina",
        table="7",
        items=(
            TicketItem(name="Tacos", quantity=2, subtotal=Decimal("20.00"), item_status="pending"),
            TicketItem(name="Agua", quantity=1, subtotal=Decimal("3.50"), item_status="fulfilled"),
        ),
        total=Decimal("23.50"),
        order_status=order_status,
    )


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def ticket_factory():
    return make_ticket


@pytest.fixture
def tacos():
    return Product(product_id="P1", name="Tacos", unit_price=Decimal("10.00"), category="Platillos")


@pytest.fixture
def agua():
    return Product(product_id="P2", name="Agua", unit_price=Decimal("3.50"), category="Bebidas")


@pytest.fixture
def context():
    return TableContext()


@pytest.fixture
def settings():
    # Long interval: background ticks never fire on their own during a test
    return Settings(api_url="http://backend.test", poll_interval=3600.0, http_timeout=1.0)


@pytest.fixture
def controller(oracle, gateway, settings):
    ctl = LifecycleController(oracle, gateway, gateway, settings=settings)
    yield ctl
    ctl.close()


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the timeout expires."""

    def _wait(predicate, timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.005)
        return predicate()

    return _wait
