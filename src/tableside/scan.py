"""Decoding of restaurant QR payloads."""

import json
from typing import Any

from .errors import InvalidQRPayloadError
from .models import Restaurant

# Keys emitted by the restaurant's web QR generator, then the documented ones
_ID_KEYS = ("restaurantId", "id_restaurante")
_NAME_KEYS = ("restaurantName", "nombre")


def parse_restaurant_payload(payload: str | bytes | dict[str, Any]) -> Restaurant:
    """
    Turn a decoded QR payload into a Restaurant.

    Accepts the raw JSON text read by the camera or an already-parsed dict.
    Extra keys (such as api_url) are ignored.

    Raises:
        InvalidQRPayloadError: If the payload is not JSON, not an object, or
            has no restaurant id.
    """
    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise InvalidQRPayloadError("payload is not JSON") from None
    else:
        data = payload

    if not isinstance(data, dict):
        raise InvalidQRPayloadError("payload is not an object")

    restaurant_id = None
    for key in _ID_KEYS:
        value = data.get(key)
        if value is not None and str(value).strip():
            restaurant_id = str(value).strip()
            break
    if restaurant_id is None:
        raise InvalidQRPayloadError("missing restaurant id")

    name = None
    for key in _NAME_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            name = value.strip()
            break

    return Restaurant(id=restaurant_id, display_name=name or "Restaurant")
