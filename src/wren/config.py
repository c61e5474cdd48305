"""Application configuration.

AppConfig is a frozen dataclass: immutable after creation,
IDE-autocompletable, no string-key dict lookups.

``AppConfig.from_mapping`` accepts the nested, camelCase layout used by
deployment files::

    {
        "port": 8080,
        "devMode": False,
        "bodyLimit": 1048576,
        "security": {
            "cors": {"origin": ["https://app.example.com"]},
            "rateLimit": {"max": 100, "window": 60000},
        },
    }
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from wren.errors import ConfigurationError

_TOP_LEVEL_KEYS = frozenset({"host", "port", "devMode", "bodyLimit", "security"})


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, port=3000, body_limit=64 * 1024)
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False

    # Requests
    body_limit: int | None = 1024 * 1024  # 1 MB
    parse_body: bool = True
    request_timeout: float | None = 30.0

    # Errors: include ``detail`` in error bodies outside debug mode
    expose_detail: bool = False

    # Security
    cors_origins: tuple[str, ...] = ()
    rate_limit_max: int | None = None
    rate_limit_window: float = 60.0

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            msg = f"port must be between 0 and 65535, got {self.port}."
            raise ConfigurationError(msg)
        if self.body_limit is not None and self.body_limit < 0:
            msg = f"body_limit must be non-negative, got {self.body_limit}."
            raise ConfigurationError(msg)
        if self.request_timeout is not None and self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got {self.request_timeout}."
            raise ConfigurationError(msg)
        if self.rate_limit_max is not None and self.rate_limit_max < 1:
            msg = f"rate_limit_max must be at least 1, got {self.rate_limit_max}."
            raise ConfigurationError(msg)
        if self.rate_limit_window <= 0:
            msg = f"rate_limit_window must be positive, got {self.rate_limit_window}."
            raise ConfigurationError(msg)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AppConfig":
        """Build a config from the nested deployment layout.

        Unknown keys raise ``ConfigurationError`` so typos surface at
        startup instead of being silently ignored.
        """
        unknown = set(data) - _TOP_LEVEL_KEYS
        if unknown:
            msg = f"Unknown configuration keys: {', '.join(sorted(unknown))}."
            raise ConfigurationError(msg)

        kwargs: dict[str, Any] = {}
        if "host" in data:
            kwargs["host"] = _expect(data, "host", str)
        if "port" in data:
            kwargs["port"] = _expect(data, "port", int)
        if "devMode" in data:
            kwargs["debug"] = _expect(data, "devMode", bool)
        if "bodyLimit" in data:
            kwargs["body_limit"] = _expect(data, "bodyLimit", int)

        security = data.get("security", {})
        if not isinstance(security, Mapping):
            msg = "'security' must be a mapping."
            raise ConfigurationError(msg)

        cors = security.get("cors")
        if cors is not None:
            origin = cors.get("origin") if isinstance(cors, Mapping) else None
            if isinstance(origin, str):
                kwargs["cors_origins"] = (origin,)
            elif isinstance(origin, (list, tuple)) and all(isinstance(o, str) for o in origin):
                kwargs["cors_origins"] = tuple(origin)
            else:
                msg = "'security.cors.origin' must be a string or a list of strings."
                raise ConfigurationError(msg)

        rate_limit = security.get("rateLimit")
        if rate_limit is not None:
            if not isinstance(rate_limit, Mapping):
                msg = "'security.rateLimit' must be a mapping."
                raise ConfigurationError(msg)
            section = "security.rateLimit."
            kwargs["rate_limit_max"] = _expect(rate_limit, "max", int, prefix=section)
            if "window" in rate_limit:
                # Deployment files give the window in milliseconds
                window_ms = _expect(rate_limit, "window", (int, float), prefix=section)
                kwargs["rate_limit_window"] = window_ms / 1000

        return cls(**kwargs)


def _expect(data: Mapping[str, Any], key: str, kind: Any, *, prefix: str = "") -> Any:
    if key not in data:
        msg = f"Missing configuration key '{prefix}{key}'."
        raise ConfigurationError(msg)
    value = data[key]
    # bool is an int subclass; only accept it where a bool is asked for
    if isinstance(value, bool) and kind is not bool:
        msg = f"'{prefix}{key}' must be a number, got a boolean."
        raise ConfigurationError(msg)
    if not isinstance(value, kind):
        msg = f"'{prefix}{key}' has the wrong type: {type(value).__name__}."
        raise ConfigurationError(msg)
    return value
