"""Structured logging for license-inspector.

Configures `structlog <https://www.structlog.org/>`_ to write to stderr so
that stdout stays clean for rendered reports (``license-inspector list
--format json | jq``). Two renderers are available: a human-readable console
renderer (default) and a JSON renderer (``--json-log``).

Usage::

    from license_inspector.log import configure_logging, get_logger

    configure_logging(verbose=True)
    log = get_logger(__name__)
    log.debug("registry_lookup_failed", gem="rake", status=503)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

# Env vars whose runtime values must never show up in log output.
SENSITIVE_ENV_VARS: tuple[str, ...] = ("GITHUB_TOKEN", "GH_TOKEN")

_REDACTED = "[REDACTED]"
# None until collected, either by configure_logging or on first redaction.
_secret_values: frozenset[str] | None = None


def configure_logging(*, verbose: bool = False, quiet: bool = False, json_log: bool = False) -> None:
    """Configure structlog and the stdlib root logger.

    Call once at startup, before any log calls. ``quiet`` wins over
    ``verbose``.
    """
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=True)

    global _secret_values
    _secret_values = _collect_secret_values()

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]

    if json_log:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


def get_logger(name: str = "license_inspector") -> Any:
    return structlog.get_logger(name)


def _collect_secret_values() -> frozenset[str]:
    return frozenset(value for name in SENSITIVE_ENV_VARS if (value := os.environ.get(name, "")))


def _secrets() -> frozenset[str]:
    global _secret_values
    if _secret_values is None:
        _secret_values = _collect_secret_values()
    return _secret_values


def _scrub(value: object, secrets: frozenset[str]) -> object:
    if not isinstance(value, str):
        return value
    for secret in secrets:
        # Very short values would redact unrelated text.
        if len(secret) >= 8 and secret in value:
            value = value.replace(secret, _REDACTED)
    return value


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Structlog processor replacing token values in every string field.

    Token values are read from the environment on first use when
    :func:`configure_logging` has not run yet.
    """
    secrets = _secrets()
    if not secrets:
        return event_dict
    return {key: _scrub(value, secrets) for key, value in event_dict.items()}


__all__ = ["SENSITIVE_ENV_VARS", "configure_logging", "get_logger", "redact_secrets"]
