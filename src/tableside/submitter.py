"""Order submission and the other table-bound gateway calls."""

import logging
from decimal import Decimal
from typing import Callable

from .config import DEFAULT_MIN_PIN_LENGTH
from .context import TableContext
from .errors import (
    EmptyCartError,
    InvalidPaymentMethodError,
    PinRejectedError,
    PinRequiredError,
    ServerRejectionError,
    SubmissionInProgressError,
    TransportError,
)
from .gateway import OrderGateway
from .models import Notice, OrderPayload, OrderStatus, PaymentMethod, SubmitResult, Ticket
from .session import validate_pin

logger = logging.getLogger(__name__)


def parse_payment_method(method: str | PaymentMethod | None) -> PaymentMethod:
    """
    Raises:
        InvalidPaymentMethodError: If ``method`` is not card or cash.
    """
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(str(method).strip().lower())
    except ValueError:
        raise InvalidPaymentMethodError(method) from None


class OrderSubmitter:
    """Sends the cart of a TableContext to the order gateway.

    Results are applied to the context only if the PIN they were obtained
    for is still bound, so a reset that happens while a call is in flight
    always wins.
    """

    def __init__(
        self,
        context: TableContext,
        gateway: OrderGateway,
        min_pin_length: int = DEFAULT_MIN_PIN_LENGTH,
        on_settled: Callable[[], None] | None = None,
    ):
        self._context = context
        self._gateway = gateway
        self.min_pin_length = min_pin_length
        self._on_settled = on_settled

    def _require_pin(self, operation: str) -> str:
        pin = self._context.session.pin
        if pin is None:
            raise PinRequiredError(operation)
        return pin

    def _reject_pin(self, pin: str, message: str | None) -> PinRejectedError:
        with self._context.lock:
            if self._context.session.pin == pin:
                self._context.session.clear_pin()
        logger.warning("PIN %s rejected by the server", pin)
        return PinRejectedError(pin, message)

    def submit(self, pin: str | None = None) -> SubmitResult:
        """
        Submit every cart line as one order.

        Args:
            pin: PIN from a prompt flow. Validated and bound before sending.
                When None, the already bound PIN is used.

        Returns:
            SubmitResult describing what was sent.

        Raises:
            EmptyCartError: If the cart has no lines.
            InvalidPinError: If ``pin`` is malformed.
            PinRequiredError: If no PIN is bound and none was given.
            SubmissionInProgressError: If another submission is in flight.
            PinRejectedError: If the server no longer accepts the PIN. The PIN
                is cleared, the cart is kept.
            ServerRejectionError: If the server refused the order.
            TransportError: On network failure or timeout.
        """
        ctx = self._context
        with ctx.lock:
            if ctx.cart.is_empty:
                raise EmptyCartError()
            if pin is not None:
                normalized = validate_pin(pin, self.min_pin_length)
                if ctx.submission_in_flight and ctx.session.pin != normalized:
                    raise SubmissionInProgressError(normalized)
                ctx.session.set_pin(normalized)
            bound_pin = self._require_pin("sending an order")
            if not ctx.begin_submission(bound_pin):
                raise SubmissionInProgressError(bound_pin)
            lines = ctx.cart.lines
            payload = OrderPayload.from_lines(bound_pin, lines)

        try:
            logger.info("Submitting %d line(s) for PIN %s", len(payload.items), bound_pin)
            response = self._gateway.submit_order(payload)

            if response.authorization_rejected:
                raise self._reject_pin(bound_pin, response.message)
            if not response.ok:
                logger.warning("Order for PIN %s rejected: %s", bound_pin, response.message)
                raise ServerRejectionError("sending the order", response.message, response.status)

            with ctx.lock:
                if ctx.session.pin == bound_pin:
                    if response.table:
                        ctx.session.set_table_id(response.table)
                    ctx.cart.clear()
                    ctx.record_order_status(bound_pin, OrderStatus.ACTIVE.value)
                else:
                    logger.info("Session changed while order for PIN %s was in flight", bound_pin)
                table_id = ctx.session.table_id if ctx.session.pin == bound_pin else None
            logger.info("Order for PIN %s accepted (table %s)", bound_pin, table_id)
            return SubmitResult(
                pin=bound_pin,
                table_id=table_id,
                items_submitted=sum(line.quantity for line in lines),
                total=sum((line.subtotal for line in lines), Decimal("0")),
            )
        except TransportError as e:
            logger.warning("Order for PIN %s not sent: %s", bound_pin, e)
            raise
        finally:
            recheck = ctx.end_submission()
            if recheck and self._on_settled is not None:
                self._on_settled()

    def request_bill(self, payment_method: str | PaymentMethod) -> None:
        """
        Ask for the bill of the bound table.

        Raises:
            InvalidPaymentMethodError: If the method is not card or cash.
            PinRequiredError: If no PIN is bound.
            PinRejectedError: If the server no longer accepts the PIN.
            ServerRejectionError: If the server refused the request.
            TransportError: On network failure or timeout.
        """
        method = parse_payment_method(payment_method)
        pin = self._require_pin("requesting the bill")

        response = self._gateway.request_bill(pin, method)
        if response.authorization_rejected:
            raise self._reject_pin(pin, response.message)
        if not response.ok:
            raise ServerRejectionError("requesting the bill", response.message, response.status)

        logger.info("Bill requested for PIN %s (%s)", pin, method.value)
        self._context.notify(
            Notice(
                kind="bill_requested",
                title="Waiter notified",
                message="Your bill has been requested. The waiter will be with you shortly.",
            )
        )

    def fetch_ticket(self) -> Ticket | None:
        """
        Fetch the bound table's active order and record its status.

        Returns:
            The ticket, or None when the server reports no active order.

        Raises:
            PinRequiredError: If no PIN is bound.
            TransportError: On network failure or timeout.
        """
        pin = self._require_pin("tracking the order")
        response = self._gateway.fetch_ticket(pin)
        ticket = response.ticket if response.active else None
        self._context.record_order_status(pin, ticket.order_status if ticket else None)
        return ticket
