"""Cart and table-session engine for a restaurant ordering client."""

from .cart import CartStore
from .config import Settings
from .context import TableContext
from .errors import (
    AuthorizationError,
    EmptyCartError,
    InvalidPinError,
    InvalidPriceError,
    InvalidQRPayloadError,
    PinRejectedError,
    PinRequiredError,
    ServerRejectionError,
    SessionInvalidatedError,
    SubmissionInProgressError,
    TablesideError,
    TransportError,
    ValidationError,
)
from .lifecycle import LifecycleController, Phase, Screen, reachable_screens
from .models import CartLine, OrderStatus, PaymentMethod, Product, Restaurant, Ticket
from .monitor import SessionMonitor, TickOutcome
from .session import SessionState, validate_pin
from .submitter import OrderSubmitter

__version__ = "0.1.0"

__all__ = [
    # Components
    "CartStore",
    "SessionState",
    "SessionMonitor",
    "OrderSubmitter",
    "LifecycleController",
    "TableContext",
    "Settings",
    # Lifecycle
    "Phase",
    "Screen",
    "TickOutcome",
    "reachable_screens",
    "validate_pin",
    # Models
    "CartLine",
    "Product",
    "Restaurant",
    "Ticket",
    "OrderStatus",
    "PaymentMethod",
    # Errors
    "TablesideError",
    "ValidationError",
    "EmptyCartError",
    "InvalidPinError",
    "InvalidPriceError",
    "InvalidQRPayloadError",
    "PinRequiredError",
    "SubmissionInProgressError",
    "AuthorizationError",
    "PinRejectedError",
    "TransportError",
    "ServerRejectionError",
    "SessionInvalidatedError",
]
