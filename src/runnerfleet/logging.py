import logging
from typing import Any, Callable, Iterable

import structlog

MASK = "***"


class SecretMasker:
    """Redacts registered sensitive values from structured log events.

    Values are registered as they become known during a run (registration
    token, instance id and address, worker label). Listeners are told about
    each new value so outer surfaces can mask it too.
    """

    def __init__(self, listeners: Iterable[Callable[[str], None]] = ()) -> None:
        self._secrets: set[str] = set()
        self._listeners = list(listeners)

    def add(self, value: Any) -> None:
        if value is None:
            return
        text = str(value)
        if not text or text in self._secrets:
            return
        self._secrets.add(text)
        for listener in self._listeners:
            listener(text)

    def add_listener(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)
        for text in self._secrets:
            listener(text)

    def redact(self, text: str) -> str:
        # Longest first so a secret containing another is fully replaced.
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, MASK)
        return text

    def __contains__(self, value: object) -> bool:
        return str(value) in self._secrets

    def __call__(self, _logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        if not self._secrets:
            return event_dict
        return {key: self._scrub(value) for key, value in event_dict.items()}

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.redact(value)
        if isinstance(value, (list, tuple)):
            return type(value)(self._scrub(item) for item in value)
        if isinstance(value, dict):
            return {key: self._scrub(item) for key, item in value.items()}
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return MASK if str(value) in self._secrets else value
        return value


def mask_tail(value: str, hidden: int = 5) -> str:
    """Replace the last ``hidden`` characters of a display name with ``*``."""

    visible = value[:-hidden] if len(value) > hidden else ""
    return visible.ljust(len(value), "*")


def configure_logging(
    level: int | str = logging.INFO,
    masker: SecretMasker | None = None,
) -> None:
    """Configure structlog/standard logging bridge.

    Records from stdlib loggers (httpx, paramiko) are rendered by the same
    formatter as structlog events, so the masker sees both.
    """

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        timestamper,
    ]

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    rendering: list[Any] = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if masker is not None:
        rendering.append(masker)
    rendering.append(structlog.processors.JSONRenderer())

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(foreign_pre_chain=shared, processors=rendering)
    )

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
