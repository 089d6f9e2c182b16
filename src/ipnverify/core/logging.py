"""Structured logging for the IPN verifier (structlog).

Two jobs:

* :func:`configure_logging` sets up structlog on top of stdlib logging
  once per process (JSON lines by default, console renderer with
  ``IPN_LOG_JSON=false``).
* :func:`adapt_logger` turns whatever logger a caller hands to
  :class:`~ipnverify.verifier.IpnVerifier` into one that accepts an event
  name plus key/value context::

      log = adapt_logger(None)
      log.info("ipn_verification_started", txn_id="51991334", field_count=12)

  structlog loggers and mocks pass through untouched.  A stdlib
  :class:`logging.Logger` is wrapped by structlog.  Anything else that
  only takes a message string (``info(msg)``) gets one pre-rendered
  ``key=value`` line.

IPN payloads carry buyer details.  Every path runs event values through
the redaction processor before rendering.
"""

from __future__ import annotations

import inspect
import logging
import sys
from collections.abc import Mapping, MutableMapping
from typing import Any

import structlog

from ipnverify.modules.redaction import MASK, is_sensitive, redact_pii

# Keys whose values never appear in logs, on top of the sensitive IPN fields.
_SUPPRESSED_KEYS = frozenset({"key", "secret", "password", "token", "credential"})

# Noisy libraries under the post back.
_QUIET_LOGGERS = ("httpx", "httpcore")


def _redaction_processor(
    _logger: Any,
    _method: str,
    event_dict: MutableMapping[str, Any],
) -> Mapping[str, Any]:
    """Mask secrets, buyer fields (``payer_email``, address parts, ...) and PII."""
    for k, v in event_dict.items():
        if k in _SUPPRESSED_KEYS:
            event_dict[k] = "[SUPPRESSED]"
        elif is_sensitive(k):
            event_dict[k] = MASK
        elif isinstance(v, str):
            event_dict[k] = redact_pii(v)
    return event_dict


def _message_processors() -> list[structlog.types.Processor]:
    """Chain for loggers that only take one message string."""
    return [
        _redaction_processor,
        structlog.processors.KeyValueRenderer(key_order=["event", "txn_id"], drop_missing=True),
    ]


def _accepts_context(logger: Any) -> bool:
    """True if ``logger.info`` takes keyword context (structlog, mocks)."""
    info = getattr(logger, "info", None)
    if info is None:
        raise TypeError(f"logger must provide info() and error(), got {type(logger).__name__}")
    try:
        params = inspect.signature(info).parameters.values()
    except (TypeError, ValueError):
        return False
    return any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params)


def adapt_logger(logger: Any = None) -> Any:
    """Return a logger that takes ``(event, **context)`` calls.

    Parameters
    ----------
    logger:
        ``None`` for the package's structlog logger, a stdlib
        :class:`logging.Logger`, a structlog logger, or any object with
        leveled ``info(msg)`` / ``error(msg)`` methods.

    Raises
    ------
    TypeError
        If *logger* has no ``info`` method.
    """
    if logger is None:
        return structlog.get_logger("ipnverify")
    if isinstance(logger, logging.Logger):
        return structlog.wrap_logger(logger, wrapper_class=structlog.stdlib.BoundLogger)
    if _accepts_context(logger):
        return logger
    return structlog.wrap_logger(
        logger,
        processors=_message_processors(),
        wrapper_class=structlog.BoundLogger,
    )


def configure_logging(*, level: str = "INFO", json_output: bool = True) -> None:
    """Route structlog through stdlib logging to stderr.

    Parameters
    ----------
    level:
        Root log level (``DEBUG``, ``INFO``, ...).  Unknown names fall
        back to ``INFO``.
    json_output:
        JSON lines if *True*, coloured console output if *False*.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _redaction_processor,
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
