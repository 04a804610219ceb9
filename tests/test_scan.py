"""Tests for QR payload decoding."""

import pytest

from tableside.errors import InvalidQRPayloadError
from tableside.models import Restaurant
from tableside.scan import parse_restaurant_payload


class TestParseRestaurantPayload:
    def test_generator_keys(self):
        payload = '{"restaurantId": "12", "restaurantName": "La Cocina", "api_url": "https://x"}'
        assert parse_restaurant_payload(payload) == Restaurant("12", "La Cocina")

    def test_documented_keys(self):
        assert parse_restaurant_payload({"id_restaurante": 12, "nombre": "El Patio"}) == Restaurant(
            "12", "El Patio"
        )

    def test_bytes(self):
        assert parse_restaurant_payload(b'{"restaurantId": "r1"}').id == "r1"

    def test_name_defaults(self):
        assert parse_restaurant_payload('{"restaurantId": "r1"}').display_name == "Restaurant"
        assert parse_restaurant_payload('{"restaurantId": "r1", "restaurantName": "  "}').display_name == (
            "Restaurant"
        )

    @pytest.mark.parametrize(
        "payload,reason",
        [
            ("not json at all", "not JSON"),
            ("[1, 2, 3]", "not an object"),
            ('"r1"', "not an object"),
            ('{"name": "La Cocina"}', "missing restaurant id"),
            ('{"restaurantId": "  "}', "missing restaurant id"),
            (b"\xff\xfe", "not JSON"),
        ],
    )
    def test_rejected(self, payload, reason):
        with pytest.raises(InvalidQRPayloadError, match=reason):
            parse_restaurant_payload(payload)
