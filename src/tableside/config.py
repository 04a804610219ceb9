"""Runtime configuration for tableside."""

import os
from dataclasses import dataclass

# Defaults, each overridable through the matching TABLESIDE_* environment variable
DEFAULT_API_URL = "https://proyectoyaweb.onrender.com"
DEFAULT_POLL_INTERVAL = 5.0  # seconds between session checks
DEFAULT_HTTP_TIMEOUT = 10.0  # seconds, applies to connect and read
DEFAULT_MIN_PIN_LENGTH = 3


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Settings shared by the controller, the monitor and the HTTP gateway."""

    api_url: str = DEFAULT_API_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    min_pin_length: int = DEFAULT_MIN_PIN_LENGTH

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the environment.

        Reads TABLESIDE_API_URL, TABLESIDE_POLL_INTERVAL, TABLESIDE_HTTP_TIMEOUT
        and TABLESIDE_MIN_PIN_LENGTH, falling back to the module defaults.

        Raises:
            ValueError: If a numeric variable is malformed or out of range.
        """
        return cls(
            api_url=os.environ.get("TABLESIDE_API_URL", DEFAULT_API_URL).rstrip("/"),
            poll_interval=_env_float("TABLESIDE_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            http_timeout=_env_float("TABLESIDE_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            min_pin_length=_env_int("TABLESIDE_MIN_PIN_LENGTH", DEFAULT_MIN_PIN_LENGTH),
        )
