"""Custom exceptions for tableside."""


class TablesideError(Exception):
    """Base exception for all tableside errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Validation: rejected before any network call, state untouched.


class ValidationError(TablesideError):
    """Raised when input is rejected locally."""

    pass


class EmptyCartError(ValidationError):
    """Raised when submitting an order with nothing in the cart."""

    def __init__(self):
        super().__init__("Cart is empty. Add something first.")


class InvalidQuantityError(ValidationError):
    """Raised when a quantity to add is below 1."""

    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__(f"Invalid quantity: {quantity} (must be >= 1)")


class InvalidPriceError(ValidationError):
    """Raised when a product price is missing, not a finite number, or negative."""

    def __init__(self, price: object, reason: str):
        self.price = price
        self.reason = reason
        super().__init__(f"Invalid price {price!r}: {reason}")


class InvalidPinError(ValidationError):
    """Raised when a PIN does not have the expected format."""

    def __init__(self, pin: str | None, reason: str):
        self.pin = pin
        self.reason = reason
        super().__init__(f"Invalid PIN: {reason}")


class PinRequiredError(ValidationError):
    """Raised when an operation needs a table PIN and none is bound."""

    def __init__(self, operation: str = "this operation"):
        self.operation = operation
        super().__init__(f"A table PIN is required for {operation}. Enter the PIN from your waiter.")


class InvalidQRPayloadError(ValidationError):
    """Raised when a decoded QR payload is not a restaurant code."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"QR code not recognized: {reason}. Scan the restaurant's QR code.")


class RestaurantRequiredError(ValidationError):
    """Raised when the menu is requested before a restaurant code was scanned."""

    def __init__(self):
        super().__init__("No restaurant selected. Scan the restaurant's QR code first.")


class InvalidPaymentMethodError(ValidationError):
    """Raised when a bill is requested with an unknown payment method."""

    def __init__(self, method: str | None):
        self.method = method
        super().__init__(f"Invalid payment method: {method!r}. Choose card or cash.")


class SubmissionInProgressError(ValidationError):
    """Raised when an order is submitted while another one is still in flight."""

    def __init__(self, pin: str):
        self.pin = pin
        super().__init__("An order for this table is already being sent.")


class InvalidTransitionError(ValidationError):
    """Raised when a lifecycle step is not allowed from the current phase."""

    def __init__(self, action: str, phase: str):
        self.action = action
        self.phase = phase
        super().__init__(f"Cannot {action} while {phase}")


# Remote conditions.


class AuthorizationError(TablesideError):
    """Raised when the backend no longer accepts the table PIN."""

    pass


class PinRejectedError(AuthorizationError):
    """Raised when the PIN was rejected; the caller must ask for a new one."""

    def __init__(self, pin: str, message: str | None = None):
        self.pin = pin
        super().__init__(message or "The table PIN was not accepted. Enter a new PIN.")


class TransportError(TablesideError):
    """Network failure or timeout talking to the backend."""

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Connection failed during {operation}")

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message


class ServerRejectionError(TablesideError):
    """The backend answered with a structured failure."""

    def __init__(self, operation: str, message: str | None = None, status: int | None = None):
        self.operation = operation
        self.status = status
        self.server_message = message
        super().__init__(message or f"The server could not complete {operation}.")


class SessionInvalidatedError(TablesideError):
    """The backend reports that the table session has ended."""

    def __init__(self, pin: str):
        self.pin = pin
        super().__init__("The waiter has closed the bill. Thanks for your visit!")
