"""PayPal IPN verifier.

Verifies Instant Payment Notification data by posting it back to PayPal
and reading the one-word answer.

How it works
------------
1. ``verify()`` prepends ``cmd=_notify-validate`` to the received fields
   and URL-encodes them in their original order.
2. The body is POSTed once to ``https://<host>/cgi-bin/webscr`` over a
   certificate-verified channel (see :mod:`ipnverify.modules.transport`).
3. A reply other than HTTP 200 is an error.  Otherwise the body decides:
   ``VERIFIED`` → ``True``, ``INVALID`` → ``False``, anything else is an
   error.

Every failure raises a typed :class:`~ipnverify.core.errors.IpnError`;
``False`` only ever means PayPal said ``INVALID``.

A verifier keeps the last request, reply and status on the instance.
It is not safe to share one between threads.
"""

from __future__ import annotations

import warnings
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any
from urllib.parse import quote_plus

import httpx

from ipnverify.core.errors import (
    IpnError,
    IpnTimeoutError,
    NoDataError,
    TransportError,
    TrustStoreError,
    UnexpectedResponseError,
    UnexpectedStatusError,
)
from ipnverify.core.logging import adapt_logger
from ipnverify.core.models import VerificationOutcome, VerificationStatus
from ipnverify.core.settings import Settings
from ipnverify.modules.redaction import redact_fields
from ipnverify.modules.transport import (
    DEFAULT_TIMEOUT,
    TRANSPORT_TAG,
    open_client,
    post_uri_for,
    raw_response,
)

VALIDATE_COMMAND = "cmd=_notify-validate"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Report layout.  Fixed: operators read these reports column by column.
REPORT_RULE_WIDTH = 80
REPORT_KEY_WIDTH = 25


def encode_post_data(post_data: Mapping[str, str]) -> str:
    """Build the validation body for *post_data*, keeping its order."""
    encoded = VALIDATE_COMMAND
    for key, value in post_data.items():
        encoded += f"&{key}={quote_plus(value)}"
    return encoded


def render_text_report(
    *,
    post_uri: str,
    response: str,
    fields: Mapping[str, str],
    at: datetime,
) -> str:
    """Plain-text report of one verification attempt."""
    rule = "-" * REPORT_RULE_WIDTH
    stamp = f"{at:%m/%d/%Y} {at.hour % 12 or 12}:{at:%M} {'AM' if at.hour < 12 else 'PM'}"

    r = f"{rule}\n[{stamp}] - {post_uri} ({TRANSPORT_TAG})\n"
    r += f"{rule}\n{response}\n"
    r += f"{rule}\n"
    for key, value in fields.items():
        r += f"{key.ljust(REPORT_KEY_WIDTH)}{value}\n"
    r += "\n\n"
    return r


def _now() -> datetime:
    return datetime.now()


class IpnVerifier:
    """Verifies IPN data with PayPal.

    Parameters
    ----------
    use_sandbox:
        Post back to ``www.sandbox.paypal.com`` instead of the live host.
        Read at call time, so flipping it between calls takes effect.
    timeout:
        Seconds to wait for PayPal before giving up.
    ca_bundle:
        CA bundle the peer certificate is checked against.  ``None`` uses
        the bundle shipped with certifi.
    tls_compat:
        Pin the handshake to TLS 1.2.
    logger:
        Leveled logger called around each attempt.  Defaults to a
        structlog logger.  Stdlib loggers and message-only loggers are
        adapted by :func:`~ipnverify.core.logging.adapt_logger`.
    transport:
        Optional ``httpx`` transport, mainly for tests.
    """

    def __init__(
        self,
        use_sandbox: bool,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        ca_bundle: Path | str | None = None,
        tls_compat: bool = False,
        logger: Any = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.use_sandbox = use_sandbox
        self.timeout = timeout
        self.ca_bundle = ca_bundle
        self.tls_compat = tls_compat
        self._transport = transport

        self._log = adapt_logger(logger)

        self._post_data: dict[str, str] = {}
        self._outcome = VerificationOutcome()
        self._status = VerificationStatus.UNKNOWN

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "IpnVerifier":
        """Build a verifier from :class:`Settings`; *kwargs* win over it."""
        params: dict[str, Any] = {
            "timeout": settings.timeout,
            "ca_bundle": settings.ca_bundle,
            "tls_compat": settings.tls_compat,
        }
        params.update(kwargs)
        use_sandbox = params.pop("use_sandbox", settings.use_sandbox)
        return cls(use_sandbox, **params)

    # ── Configuration ───────────────────────────────────────
    @property
    def use_sandbox(self) -> bool:
        return self._use_sandbox

    @use_sandbox.setter
    def use_sandbox(self, value: bool) -> None:
        if not isinstance(value, bool):
            raise TypeError(f"use_sandbox must be a bool, got {type(value).__name__}")
        self._use_sandbox = value

    @property
    def timeout(self) -> float:
        return self._timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"timeout must be a number, got {type(value).__name__}")
        if value <= 0:
            raise ValueError(f"timeout must be positive, got {value}")
        self._timeout = float(value)

    # ── Verification ────────────────────────────────────────
    def verify(self, post_data: Mapping[str, str] | None) -> bool:
        """Verify IPN data with PayPal.

        Returns
        -------
        bool
            ``True`` if PayPal answered ``VERIFIED``, ``False`` if it
            answered ``INVALID``.

        Raises
        ------
        NoDataError
            *post_data* is ``None`` or empty.  Nothing is sent.
        IpnTimeoutError
            PayPal did not answer within :attr:`timeout`.
        TransportError
            The connection failed (DNS, TLS, reset, ...).
        TrustStoreError
            The configured CA bundle is missing or unreadable.
        UnexpectedStatusError
            The HTTP status was not 200.
        UnexpectedResponseError
            The body held neither ``VERIFIED`` nor ``INVALID``.
        """
        if not post_data:
            self._status = VerificationStatus.NO_DATA
            self._log.error(
                "ipn_verification_failed",
                status=self._status.value,
                code=NoDataError.code,
            )
            raise NoDataError()

        fields = dict(post_data.items())
        encoded = encode_post_data(fields)
        post_uri = post_uri_for(self.use_sandbox)

        self._post_data = fields
        self._outcome = VerificationOutcome(post_uri=post_uri)

        context = {"post_uri": post_uri, "txn_id": fields.get("txn_id", "")}
        self._log.info("ipn_verification_started", field_count=len(fields), **context)

        try:
            body = self._post(post_uri, encoded)
            verified = self._classify(body)
        except IpnError as exc:
            self._log.error(
                "ipn_verification_failed",
                status=self._status.value,
                code=exc.code,
                error=str(exc),
                **context,
            )
            raise

        self._log.info(
            "ipn_verification_completed",
            status=self._status.value,
            response_status=self._outcome.response_status,
            **context,
        )
        return verified

    def process_ipn(self, post_data: Mapping[str, str] | None = None, *, request: Any = None) -> bool:
        """Deprecated alias for :meth:`verify`.

        With *post_data* omitted, the fields are read from
        ``request.form`` (a Flask/Werkzeug-style request object).
        """
        warnings.warn(
            "process_ipn() is deprecated, use verify()",
            DeprecationWarning,
            stacklevel=2,
        )
        if post_data is None and request is not None:
            post_data = request.form
        return self.verify(post_data)

    def _post(self, post_uri: str, encoded: str) -> str:
        """POST *encoded* to *post_uri*; record the outcome and return the body."""
        try:
            with open_client(
                timeout=self.timeout,
                ca_bundle=self.ca_bundle,
                tls_compat=self.tls_compat,
                transport=self._transport,
            ) as client:
                response = client.post(
                    post_uri,
                    content=encoded,
                    headers={"Content-Type": FORM_CONTENT_TYPE},
                )
        except TrustStoreError:
            self._status = VerificationStatus.ERROR
            raise
        except httpx.TimeoutException as exc:
            self._status = VerificationStatus.TIMEOUT
            raise IpnTimeoutError(str(exc) or type(exc).__name__, timeout=self.timeout) from exc
        except httpx.HTTPError as exc:
            self._status = VerificationStatus.ERROR
            raise TransportError(str(exc) or type(exc).__name__) from exc

        self._outcome = VerificationOutcome(
            response_status=str(response.status_code),
            response=raw_response(response),
            post_uri=post_uri,
        )
        return response.text

    def _classify(self, body: str) -> bool:
        if "200" not in self._outcome.response_status:
            self._status = VerificationStatus.ERROR
            raise UnexpectedStatusError(self._outcome.response_status)

        if "VERIFIED" in body:
            self._status = VerificationStatus.VERIFIED
            return True
        if "INVALID" in body:
            self._status = VerificationStatus.INVALID
            return False

        self._status = VerificationStatus.ERROR
        raise UnexpectedResponseError(body)

    # ── Accessors ───────────────────────────────────────────
    @property
    def status(self) -> VerificationStatus:
        return self._status

    @property
    def post_data(self) -> Mapping[str, str]:
        """Fields of the last attempt (read-only)."""
        return MappingProxyType(self._post_data)

    @property
    def outcome(self) -> VerificationOutcome:
        return self._outcome

    def get_verification_status_string(self) -> str:
        return self._status.value

    def get_post_uri(self) -> str:
        """URI the last post back went to, e.g. ``https://www.sandbox.paypal.com/cgi-bin/webscr``."""
        return self._outcome.post_uri

    def get_response(self) -> str:
        """The entire last reply, headers included."""
        return self._outcome.response

    def get_response_status(self) -> str:
        """HTTP status code of the last reply; ``"200"`` on success."""
        return self._outcome.response_status

    def get_text_report(self, *, redact: bool = False) -> str:
        """Plain-text report of the last attempt, for operator emails.

        With *redact*, buyer details in the field listing are masked.
        """
        fields: Mapping[str, str] = redact_fields(self._post_data) if redact else self._post_data
        return render_text_report(
            post_uri=self.get_post_uri(),
            response=self.get_response(),
            fields=fields,
            at=_now(),
        )
