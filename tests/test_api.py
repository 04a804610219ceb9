"""Tests for the FastAPI API."""

import threading
import time

import pytest
from fastapi.testclient import TestClient

from tableside.errors import TransportError
from tableside.models import OrderResponse, SessionCheck, TicketResponse

QR = {"restaurantId": "r1", "restaurantName": "La Cocina"}
TACOS = {"product_id": "P1", "name": "Tacos", "unit_price": "10.00", "category": "Platillos"}


@pytest.fixture
def api_client(controller):
    """Create test client bound to the fake-backed controller."""
    from tableside.api import app, set_controller

    set_controller(controller)
    yield TestClient(app)
    set_controller(None)


class TestHealthAndState:
    def test_health(self, api_client):
        response = api_client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["phase"] == "guest"
        assert data["monitoring"] is False

    def test_state(self, api_client):
        data = api_client.get("/api/state").json()
        assert data["phase"] == "guest"
        assert data["session"] == {"restaurant": None, "pin": None, "table_id": None}
        assert data["cart"]["lines"] == []
        assert "qr-scanner" in data["screens"]


class TestScan:
    def test_scan_flow(self, api_client):
        assert api_client.post("/api/scan/begin").status_code == 204
        assert api_client.get("/api/state").json()["phase"] == "scanning"

        response = api_client.post("/api/scan", json={"payload": QR})

        assert response.status_code == 200
        assert response.json() == {"id": "r1", "display_name": "La Cocina"}
        assert api_client.get("/api/state").json()["phase"] == "guest"

    def test_scan_json_text(self, api_client):
        response = api_client.post("/api/scan", json={"payload": '{"id_restaurante": 3}'})
        assert response.json() == {"id": "3", "display_name": "Restaurant"}

    def test_bad_payload(self, api_client):
        response = api_client.post("/api/scan", json={"payload": "hello"})
        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidQRPayloadError"

    def test_cancel(self, api_client):
        api_client.post("/api/scan/begin")
        assert api_client.post("/api/scan/cancel").status_code == 204
        assert api_client.get("/api/state").json()["phase"] == "guest"


class TestMenu:
    def test_requires_restaurant(self, api_client):
        response = api_client.get("/api/menu")
        assert response.status_code == 409
        assert response.json()["error_type"] == "RestaurantRequiredError"

    def test_sections(self, api_client, gateway, tacos, agua):
        gateway.menu = [tacos, agua]
        api_client.post("/api/scan", json={"payload": QR})

        data = api_client.get("/api/menu").json()
        assert data["categories"] == ["All", "Platillos", "Bebidas"]
        assert [s["category"] for s in data["sections"]] == ["Bebidas", "Platillos"]
        assert data["count"] == 2

        filtered = api_client.get("/api/menu", params={"query": "agua"}).json()
        assert filtered["count"] == 1
        assert filtered["categories"] == ["All", "Platillos", "Bebidas"]
        assert len(gateway.menu_requests) == 2


class TestCart:
    def test_add_merge_update_remove(self, api_client):
        response = api_client.post("/api/cart/items", json={"product": TACOS, "quantity": 2})
        assert response.status_code == 201
        assert response.json()["subtotal"] == "20.00"

        api_client.post("/api/cart/items", json={"product": TACOS})
        cart = api_client.get("/api/cart").json()
        assert len(cart["lines"]) == 1
        assert cart["total"] == "30.00"

        cart = api_client.patch("/api/cart/items", json={"product_id": "P1", "delta": -5}).json()
        assert cart["lines"][0]["quantity"] == 3

        cart = api_client.delete("/api/cart/items", params={"product_id": "P1"}).json()
        assert cart == {"lines": [], "total": "0.00", "total_items": 0}

    def test_notes_make_distinct_lines(self, api_client):
        api_client.post("/api/cart/items", json={"product": TACOS, "notes": "sin cebolla"})
        api_client.post("/api/cart/items", json={"product": TACOS})

        cart = api_client.get("/api/cart").json()
        assert [line["notes"] for line in cart["lines"]] == ["sin cebolla", ""]

        cart = api_client.delete(
            "/api/cart/items", params={"product_id": "P1", "notes": "sin cebolla"}
        ).json()
        assert [line["notes"] for line in cart["lines"]] == [""]

    def test_zero_quantity_rejected(self, api_client):
        response = api_client.post("/api/cart/items", json={"product": TACOS, "quantity": 0})
        assert response.status_code == 422

    def test_clear(self, api_client):
        api_client.post("/api/cart/items", json={"product": TACOS})
        assert api_client.delete("/api/cart").json()["total_items"] == 0


class TestSessionAndOrders:
    def test_enter_pin(self, api_client):
        response = api_client.post("/api/session/pin", json={"pin": "4821"})
        assert response.status_code == 200
        assert response.json()["pin"] == "4821"
        assert api_client.get("/api/health").json()["monitoring"] is True

    def test_invalid_pin(self, api_client):
        response = api_client.post("/api/session/pin", json={"pin": "ab"})
        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidPinError"

    def test_submit_order(self, api_client):
        api_client.post("/api/cart/items", json={"product": TACOS, "quantity": 2})

        response = api_client.post("/api/orders", json={"pin": "4821"})

        assert response.status_code == 201
        assert response.json() == {"pin": "4821", "table_id": "7", "items_submitted": 2, "total": "20.00"}
        state = api_client.get("/api/state").json()
        assert state["phase"] == "order-placed"
        assert state["cart"]["lines"] == []

    def test_empty_cart(self, api_client):
        response = api_client.post("/api/orders", json={"pin": "4821"})
        assert response.status_code == 400
        assert response.json()["error_type"] == "EmptyCartError"

    def test_pin_required(self, api_client):
        api_client.post("/api/cart/items", json={"product": TACOS})
        response = api_client.post("/api/orders", json={})
        assert response.status_code == 409

    def test_pin_rejected(self, api_client, gateway):
        api_client.post("/api/cart/items", json={"product": TACOS})
        gateway.order_responses.append(OrderResponse(ok=False, authorization_rejected=True, status=401))

        response = api_client.post("/api/orders", json={"pin": "4821"})

        assert response.status_code == 401
        state = api_client.get("/api/state").json()
        assert state["session"]["pin"] is None
        assert len(state["cart"]["lines"]) == 1

    def test_server_rejection(self, api_client, gateway):
        api_client.post("/api/cart/items", json={"product": TACOS})
        gateway.order_responses.append(OrderResponse(ok=False, message="Cocina cerrada", status=400))

        response = api_client.post("/api/orders", json={"pin": "4821"})

        assert response.status_code == 502
        assert response.json()["detail"] == "Cocina cerrada"

    def test_transport_failure(self, api_client, gateway):
        api_client.post("/api/cart/items", json={"product": TACOS})
        gateway.order_responses.append(TransportError("sending the order"))

        response = api_client.post("/api/orders", json={"pin": "4821"})

        assert response.status_code == 503
        assert response.json()["detail"] == "Connection failed during sending the order"

    def test_exit(self, api_client):
        api_client.post("/api/scan", json={"payload": QR})
        api_client.post("/api/session/pin", json={"pin": "4821"})

        data = api_client.post("/api/session/exit").json()

        assert data["phase"] == "guest"
        assert data["session"]["restaurant"] is None
        assert data["monitoring"] is False


class TestTicketAndBill:
    def test_ticket(self, api_client, gateway, ticket_factory):
        api_client.post("/api/session/pin", json={"pin": "4821"})
        gateway.ticket_responses.append(TicketResponse(active=True, ticket=ticket_factory()))

        data = api_client.get("/api/ticket").json()

        assert data["active"] is True
        assert data["ticket"]["total"] == "23.50"
        assert [i["item_status"] for i in data["ticket"]["items"]] == ["pending", "fulfilled"]

    def test_ticket_requires_pin(self, api_client):
        assert api_client.get("/api/ticket").status_code == 409

    def test_bill(self, api_client, gateway, ticket_factory):
        api_client.post("/api/session/pin", json={"pin": "4821"})
        gateway.ticket_responses.append(
            TicketResponse(active=True, ticket=ticket_factory("awaiting-payment"))
        )

        data = api_client.post("/api/bill", json={"payment_method": "cash"}).json()

        assert data["ticket"]["order_status"] == "awaiting-payment"
        state = api_client.get("/api/state").json()
        assert state["phase"] == "awaiting-payment"
        assert "payment" not in state["screens"]

        notices = api_client.get("/api/notices").json()
        assert [n["kind"] for n in notices["notices"]] == ["bill_requested"]
        assert api_client.get("/api/notices").json()["count"] == 0

    def test_bad_payment_method(self, api_client):
        api_client.post("/api/session/pin", json={"pin": "4821"})
        response = api_client.post("/api/bill", json={"payment_method": "iou"})
        assert response.status_code == 400


class TestSessionClosedByRestaurant:
    def test_notice_after_invalidation(self, api_client, controller, oracle):
        api_client.post("/api/session/pin", json={"pin": "4821"})
        api_client.post("/api/cart/items", json={"product": TACOS})
        oracle.script(SessionCheck(valid=False))

        controller.monitor.tick()

        state = api_client.get("/api/state").json()
        assert state["phase"] == "guest"
        assert state["cart"]["lines"] == []
        notices = api_client.get("/api/notices").json()["notices"]
        assert notices[0]["kind"] == "session_closed"
        assert notices[0]["title"] == "Table closed"


class TestControllerSingleton:
    def test_concurrent_first_requests_build_one_controller(self, monkeypatch, oracle, gateway, settings):
        from tableside import api
        from tableside.lifecycle import LifecycleController

        api.set_controller(None)
        created = []

        def slow_connect():
            time.sleep(0.05)
            ctl = LifecycleController(oracle, gateway, gateway, settings=settings)
            created.append(ctl)
            return ctl

        monkeypatch.setattr(api.LifecycleController, "connect", slow_connect)
        barrier = threading.Barrier(8)
        results = []

        def first_request():
            barrier.wait()
            results.append(api.get_controller())

        threads = [threading.Thread(target=first_request) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5)
        try:
            assert len(created) == 1
            assert len(results) == 8
            assert all(ctl is created[0] for ctl in results)
        finally:
            api.set_controller(None)

    def test_set_controller_closes_previous(self, controller, oracle, gateway, settings):
        from tableside import api
        from tableside.lifecycle import LifecycleController

        api.set_controller(controller)
        controller.enter_pin("4821")
        replacement = LifecycleController(oracle, gateway, gateway, settings=settings)

        api.set_controller(replacement)

        assert controller.monitor.running is False
        assert api.get_controller() is replacement
        api.set_controller(None)
