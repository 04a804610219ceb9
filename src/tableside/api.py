"""FastAPI REST API exposing a tableside client to a presentation layer."""

import threading
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, Optional, Union

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import (
    AuthorizationError,
    EmptyCartError,
    InvalidPaymentMethodError,
    InvalidPinError,
    InvalidPriceError,
    InvalidQRPayloadError,
    InvalidQuantityError,
    InvalidTransitionError,
    PinRejectedError,
    PinRequiredError,
    RestaurantRequiredError,
    ServerRejectionError,
    SessionInvalidatedError,
    SubmissionInProgressError,
    TablesideError,
    TransportError,
    ValidationError,
)
from .lifecycle import LifecycleController
from .menu import ALL_CATEGORIES, categories, filter_products, group_by_category
from .models import CartLine, Product, Ticket, money


# --- Pydantic Schemas ---


class ProductSchema(BaseModel):
    product_id: str
    name: str
    unit_price: Decimal = Field(..., ge=0)
    description: Optional[str] = None
    category: str = "General"
    image_url: Optional[str] = None


class CartLineSchema(BaseModel):
    product_id: str
    display_name: str
    unit_price: str
    notes: str
    quantity: int
    subtotal: str


class CartResponse(BaseModel):
    lines: list[CartLineSchema]
    total: str
    total_items: int


class CartAddRequest(BaseModel):
    """Request body for adding a product to the cart."""

    product: ProductSchema
    quantity: int = Field(default=1, ge=1)
    notes: str = ""


class CartUpdateRequest(BaseModel):
    """Request body for changing a line's quantity."""

    product_id: str
    delta: int
    notes: str = ""


class ScanRequest(BaseModel):
    payload: Union[str, dict[str, Any]] = Field(
        ..., description="Decoded QR content: JSON text or an already-parsed object"
    )


class RestaurantSchema(BaseModel):
    id: str
    display_name: str


class PinRequest(BaseModel):
    pin: str


class OrderRequest(BaseModel):
    pin: Optional[str] = Field(None, description="PIN from the prompt when no table is bound yet")


class SubmitResultSchema(BaseModel):
    pin: str
    table_id: Optional[str]
    items_submitted: int
    total: str


class BillRequest(BaseModel):
    payment_method: str = Field(..., description="'card' or 'cash'")


class TicketItemSchema(BaseModel):
    name: str
    quantity: int
    subtotal: str
    item_status: str


class TicketSchema(BaseModel):
    restaurant: Optional[str]
    table: Optional[str]
    items: list[TicketItemSchema]
    total: str
    order_status: str
    server_status: Optional[str] = None


class TicketResponse(BaseModel):
    active: bool
    ticket: Optional[TicketSchema] = None


class MenuSection(BaseModel):
    category: str
    products: list[ProductSchema]


class MenuResponse(BaseModel):
    categories: list[str]
    sections: list[MenuSection]
    count: int


class SessionSchema(BaseModel):
    restaurant: Optional[RestaurantSchema]
    pin: Optional[str]
    table_id: Optional[str]


class StateResponse(BaseModel):
    phase: str
    screens: list[str]
    session: SessionSchema
    order_status: Optional[str]
    cart: CartResponse
    monitoring: bool


class NoticeSchema(BaseModel):
    kind: str
    title: str
    message: str
    created_at: str


class NoticeListResponse(BaseModel):
    notices: list[NoticeSchema]
    count: int


class ErrorResponse(BaseModel):
    detail: str
    error_type: str


# --- Helper Functions ---


_controller: LifecycleController | None = None
# Sync endpoints run in a threadpool
_controller_lock = threading.Lock()


def get_controller() -> LifecycleController:
    """Get the process-wide controller, connecting to the backend on first use."""
    global _controller
    controller = _controller
    if controller is not None:
        return controller
    with _controller_lock:
        if _controller is None:
            _controller = LifecycleController.connect()
        return _controller


def set_controller(controller: LifecycleController | None) -> None:
    """Replace the process-wide controller (used by tests and embedders)."""
    global _controller
    with _controller_lock:
        previous = _controller
        _controller = controller
    if previous is not None and previous is not controller:
        previous.close()


def product_from_schema(schema: ProductSchema) -> Product:
    return Product(
        product_id=schema.product_id,
        name=schema.name,
        unit_price=schema.unit_price,
        description=schema.description,
        category=schema.category,
        image_url=schema.image_url,
    )


def product_to_schema(product: Product) -> ProductSchema:
    return ProductSchema(
        product_id=product.product_id,
        name=product.name,
        unit_price=product.unit_price,
        description=product.description,
        category=product.category,
        image_url=product.image_url,
    )


def line_to_schema(line: CartLine) -> CartLineSchema:
    return CartLineSchema(**line.to_dict())


def cart_response(controller: LifecycleController) -> CartResponse:
    lines = controller.cart_lines
    return CartResponse(
        lines=[line_to_schema(line) for line in lines],
        total=str(money(sum((line.subtotal for line in lines), Decimal("0")))),
        total_items=sum(line.quantity for line in lines),
    )


def ticket_response(ticket: Ticket | None) -> TicketResponse:
    if ticket is None:
        return TicketResponse(active=False)
    return TicketResponse(active=True, ticket=TicketSchema(**ticket.to_dict()))


# --- FastAPI App ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _controller is not None:
        _controller.close()


app = FastAPI(
    title="tableside API",
    description="REST API for the diner's cart and table session",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes; subclasses not listed use their parent's code
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    EmptyCartError: 400,
    InvalidQuantityError: 400,
    InvalidPinError: 400,
    InvalidPriceError: 400,
    InvalidQRPayloadError: 400,
    InvalidPaymentMethodError: 400,
    PinRequiredError: 409,
    RestaurantRequiredError: 409,
    SubmissionInProgressError: 409,
    InvalidTransitionError: 409,
    AuthorizationError: 401,
    PinRejectedError: 401,
    ServerRejectionError: 502,
    TransportError: 503,
    SessionInvalidatedError: 410,
}


def status_code_for(exc: TablesideError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


@app.exception_handler(TablesideError)
async def tableside_error_handler(request: Request, exc: TablesideError) -> JSONResponse:
    """Map TablesideError subclasses to appropriate HTTP responses."""
    return JSONResponse(
        status_code=status_code_for(exc),
        content=ErrorResponse(detail=exc.message, error_type=type(exc).__name__).model_dump(),
    )


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    controller = get_controller()
    return {
        "status": "ok",
        "phase": controller.phase.value,
        "monitoring": controller.monitor.running,
    }


@app.get("/api/state", response_model=StateResponse)
def get_state():
    """Phase, reachable screens, session and cart in one call."""
    return StateResponse(**get_controller().snapshot())


@app.get("/api/notices", response_model=NoticeListResponse)
def drain_notices():
    """Return notices not yet shown (table closed, waiter notified). Each is returned once."""
    notices = [NoticeSchema(**n.to_dict()) for n in get_controller().drain_notices()]
    return NoticeListResponse(notices=notices, count=len(notices))


# --- Scan Endpoints ---


@app.post("/api/scan/begin", status_code=204)
def begin_scan():
    get_controller().begin_scan()


@app.post("/api/scan/cancel", status_code=204)
def cancel_scan():
    get_controller().cancel_scan()


@app.post("/api/scan", response_model=RestaurantSchema)
def handle_scan(request: ScanRequest):
    restaurant = get_controller().handle_scan(request.payload)
    return RestaurantSchema(**restaurant.to_dict())


# --- Menu Endpoints ---


@app.get("/api/menu", response_model=MenuResponse)
def get_menu(
    query: str = Query(default="", description="Search in name and description"),
    category: str = Query(default=ALL_CATEGORIES),
):
    controller = get_controller()
    all_products = controller.load_menu()
    products = filter_products(all_products, query, category)
    sections = [
        MenuSection(category=name, products=[product_to_schema(p) for p in group])
        for name, group in group_by_category(products)
    ]
    return MenuResponse(categories=categories(all_products), sections=sections, count=len(products))


# --- Cart Endpoints ---


@app.get("/api/cart", response_model=CartResponse)
def get_cart():
    return cart_response(get_controller())


@app.post("/api/cart/items", response_model=CartLineSchema, status_code=201)
def add_cart_item(request: CartAddRequest):
    line = get_controller().add_to_cart(
        product_from_schema(request.product), request.quantity, request.notes
    )
    return line_to_schema(line)


@app.patch("/api/cart/items", response_model=CartResponse)
def update_cart_item(request: CartUpdateRequest):
    controller = get_controller()
    controller.update_quantity(request.product_id, request.delta, request.notes)
    return cart_response(controller)


@app.delete("/api/cart/items", response_model=CartResponse)
def remove_cart_item(product_id: str = Query(...), notes: str = Query(default="")):
    controller = get_controller()
    controller.remove_from_cart(product_id, notes)
    return cart_response(controller)


@app.delete("/api/cart", response_model=CartResponse)
def clear_cart():
    controller = get_controller()
    controller.clear_cart()
    return cart_response(controller)


# --- Session Endpoints ---


@app.post("/api/session/pin", response_model=SessionSchema)
def enter_pin(request: PinRequest):
    controller = get_controller()
    controller.enter_pin(request.pin)
    return SessionSchema(**controller.snapshot()["session"])


@app.post("/api/session/exit", response_model=StateResponse)
def exit_session():
    controller = get_controller()
    controller.exit_session()
    return StateResponse(**controller.snapshot())


@app.post("/api/orders", response_model=SubmitResultSchema, status_code=201)
def submit_order(request: OrderRequest):
    result = get_controller().submit_order(request.pin)
    return SubmitResultSchema(**result.to_dict())


@app.get("/api/ticket", response_model=TicketResponse)
def get_ticket():
    return ticket_response(get_controller().refresh_ticket())


@app.post("/api/bill", response_model=TicketResponse)
def request_bill(request: BillRequest):
    return ticket_response(get_controller().request_bill(request.payment_method))
