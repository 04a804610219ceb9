"""Protocol definitions for the backend collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .models import (
        BillResponse,
        OrderPayload,
        OrderResponse,
        PaymentMethod,
        Product,
        SessionCheck,
        TicketResponse,
    )


class SessionOracle(Protocol):
    """Answers whether a PIN is still an active table session."""

    def check_session(self, pin: str) -> SessionCheck:
        """Check a PIN.

        Returns:
            SessionCheck with valid=False only on a definitive answer.

        Raises:
            TransportError: If the backend could not be reached. This is a
                different channel from valid=False.
        """
        ...


class OrderGateway(Protocol):
    """Accepts orders, bill requests and tracking queries for a table."""

    def submit_order(self, payload: OrderPayload) -> OrderResponse:
        """Send an order.

        Rejections come back as OrderResponse(ok=False); a rejected PIN is
        flagged with authorization_rejected=True.

        Raises:
            TransportError: On network failure or timeout.
        """
        ...

    def request_bill(self, pin: str, payment_method: PaymentMethod) -> BillResponse:
        """Ask the waiter for the bill.

        Raises:
            TransportError: On network failure or timeout.
        """
        ...

    def fetch_ticket(self, pin: str) -> TicketResponse:
        """Fetch the table's active order.

        Raises:
            TransportError: On network failure or timeout.
        """
        ...


class MenuCatalog(Protocol):
    """Lists the products a restaurant offers."""

    def fetch_menu(self, restaurant_id: str) -> list[Product]:
        """Fetch the menu of a restaurant.

        Raises:
            TransportError: On network failure or timeout.
            ServerRejectionError: If the backend refuses the request.
        """
        ...
