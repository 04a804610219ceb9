"""HTTP implementation of the backend collaborators.

Talks to the restaurant backend's mobile API (``/api/movil/...``) and maps
its Spanish wire format onto tableside models. Every request carries a
timeout; any ``requests`` failure surfaces as TransportError.
"""

import logging
from typing import Any

import requests

from .config import DEFAULT_API_URL, DEFAULT_HTTP_TIMEOUT
from .errors import InvalidPriceError, ServerRejectionError, TransportError
from .models import (
    BillResponse,
    ItemStatus,
    OrderPayload,
    OrderResponse,
    OrderStatus,
    PaymentMethod,
    Product,
    SessionCheck,
    Ticket,
    TicketItem,
    TicketResponse,
    to_decimal,
)

logger = logging.getLogger(__name__)

# Backend spelling of order and item states
SERVER_ORDER_STATUS = {
    "por_pagar": OrderStatus.AWAITING_PAYMENT,
    "cerrada": OrderStatus.CLOSED,
    "cerrado": OrderStatus.CLOSED,
    "pagada": OrderStatus.CLOSED,
    "pagado": OrderStatus.CLOSED,
}
SERVER_ITEM_STATUS = {
    "completado": ItemStatus.FULFILLED,
    "servido": ItemStatus.FULFILLED,
}
SERVER_PAYMENT_METHOD = {
    PaymentMethod.CARD: "tarjeta",
    PaymentMethod.CASH: "efectivo",
}


class UnexpectedResponse(ValueError):
    """The backend answered with a body tableside cannot interpret."""


def map_order_status(raw: str | None) -> OrderStatus:
    """Map a backend order state; anything not billed or closed counts as active."""
    if raw is None:
        return OrderStatus.ACTIVE
    return SERVER_ORDER_STATUS.get(raw.strip().lower(), OrderStatus.ACTIVE)


def map_item_status(raw: str | None) -> ItemStatus:
    if raw is None:
        return ItemStatus.PENDING
    return SERVER_ITEM_STATUS.get(raw.strip().lower(), ItemStatus.PENDING)


def product_from_wire(data: dict[str, Any]) -> Product:
    product_id = data.get("id_producto", data.get("id"))
    if product_id is None:
        raise UnexpectedResponse(f"menu entry without id: {data!r}")
    return Product(
        product_id=str(product_id),
        name=data.get("nombre") or "",
        unit_price=data.get("precio_venta", data.get("precio")),
        description=data.get("descripcion"),
        category=data.get("categoria") or data.get("nombre_categoria") or "General",
        image_url=data.get("imagen"),
    )


def ticket_from_wire(data: dict[str, Any]) -> Ticket:
    ticket = data.get("ticket") or {}
    raw_status = data.get("estado")
    items = tuple(
        TicketItem(
            name=item.get("nombre") or "",
            quantity=int(item.get("cantidad") or 0),
            subtotal=to_decimal(item.get("subtotal")),
            item_status=map_item_status(item.get("estado_producto")).value,
        )
        for item in ticket.get("items") or []
    )
    table = ticket.get("mesa")
    return Ticket(
        restaurant=ticket.get("restaurante"),
        table=str(table) if table is not None else None,
        items=items,
        total=to_decimal(ticket.get("total")),
        order_status=map_order_status(raw_status).value,
        server_status=raw_status,
    )


def order_to_wire(payload: OrderPayload) -> dict[str, Any]:
    return {
        "pin": payload.pin,
        "items": [
            {"id_producto": item.product_id, "cantidad": item.quantity, "notas": item.notes}
            for item in payload.items
        ],
    }


class HttpBackend:
    """Session oracle, order gateway and menu catalog over the backend REST API."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, operation: str, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = self._url(path)
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise TransportError(operation, e) from e

    def _body(self, resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            logger.warning("Non-JSON response (%s) from %s", resp.status_code, resp.url)
            return None

    @staticmethod
    def _message(body: Any) -> str | None:
        if isinstance(body, dict):
            message = body.get("message") or body.get("mensaje") or body.get("error")
            if isinstance(message, str) and message.strip():
                return message
        return None

    def check_session(self, pin: str) -> SessionCheck:
        """Only an explicit ``{"valida": false}`` counts as invalid."""
        resp = self._request("checking the session", "GET", f"/api/movil/verificar-sesion/{pin}")
        body = self._body(resp)
        if isinstance(body, dict) and isinstance(body.get("valida"), bool):
            return SessionCheck(valid=body["valida"])
        raise TransportError(
            "checking the session",
            UnexpectedResponse(f"HTTP {resp.status_code} without a validity flag"),
        )

    def submit_order(self, payload: OrderPayload) -> OrderResponse:
        resp = self._request("sending the order", "POST", "/api/movil/pedido", json=order_to_wire(payload))
        body = self._body(resp)
        if resp.ok:
            table = body.get("mesa") if isinstance(body, dict) else None
            return OrderResponse(
                ok=True,
                table=str(table) if table is not None else None,
                status=resp.status_code,
            )
        return OrderResponse(
            ok=False,
            message=self._message(body),
            authorization_rejected=resp.status_code == 401,
            status=resp.status_code,
        )

    def request_bill(self, pin: str, payment_method: PaymentMethod) -> BillResponse:
        body_out = {"pin": pin, "metodo_pago": SERVER_PAYMENT_METHOD[payment_method]}
        resp = self._request("requesting the bill", "POST", "/api/movil/cuenta", json=body_out)
        body = self._body(resp)
        return BillResponse(
            ok=resp.ok,
            message=self._message(body),
            authorization_rejected=resp.status_code == 401,
            status=resp.status_code,
        )

    def fetch_ticket(self, pin: str) -> TicketResponse:
        resp = self._request("tracking the order", "GET", f"/api/movil/seguimiento/{pin}")
        body = self._body(resp)
        if not resp.ok or not isinstance(body, dict):
            raise TransportError(
                "tracking the order",
                UnexpectedResponse(f"HTTP {resp.status_code} from order tracking"),
            )
        if not body.get("activo"):
            return TicketResponse(active=False)
        try:
            return TicketResponse(active=True, ticket=ticket_from_wire(body))
        except (TypeError, ValueError, AttributeError) as e:
            raise TransportError("tracking the order", UnexpectedResponse(str(e))) from e

    def fetch_menu(self, restaurant_id: str) -> list[Product]:
        resp = self._request(
            "loading the menu", "GET", "/api/movil/menu", params={"restaurant_id": restaurant_id}
        )
        body = self._body(resp)
        if not resp.ok:
            raise ServerRejectionError("loading the menu", self._message(body), resp.status_code)
        if not isinstance(body, list):
            raise TransportError("loading the menu", UnexpectedResponse("menu is not a list"))
        try:
            return [product_from_wire(entry) for entry in body if isinstance(entry, dict)]
        except (UnexpectedResponse, InvalidPriceError) as e:
            raise TransportError("loading the menu", e) from e

    def close(self) -> None:
        self.session.close()
