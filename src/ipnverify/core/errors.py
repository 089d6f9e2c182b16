"""IPN verification exceptions.

Every failure is raised as a typed exception so callers can tell a
transport problem from an unexpected reply without parsing messages.
Each class carries a stable numeric ``code`` for log correlation across
systems.

``INVALID`` is *not* an error: :meth:`IpnVerifier.verify` returns
``False`` for it.
"""

from __future__ import annotations


# ── Base ────────────────────────────────────────────────────
class IpnError(Exception):
    """Root exception for all IPN verification errors."""

    code: int = 0


# ── Transport ──────────────────────────────────────────────
class TransportError(IpnError):
    """The post back to PayPal failed below the HTTP layer."""

    code = 100

    def __init__(self, detail: str) -> None:
        super().__init__(f"Transport error: {detail}")
        self.detail = detail


class IpnTimeoutError(IpnError):
    """PayPal did not answer within the configured timeout."""

    code = 101

    def __init__(self, detail: str, timeout: float | None = None) -> None:
        limit = f" after {timeout:g}s" if timeout is not None else ""
        super().__init__(f"Verification request timed out{limit}: {detail}")
        self.detail = detail
        self.timeout = timeout


class TrustStoreError(IpnError):
    """The configured CA bundle cannot be used."""

    code = 102

    def __init__(self, path: str, detail: str = "") -> None:
        super().__init__(f"CA bundle unusable: {path}" + (f" ({detail})" if detail else ""))
        self.path = path
        self.detail = detail


class TrustStoreMissing(TrustStoreError):
    """The configured CA bundle does not exist."""

    def __init__(self, path: str) -> None:
        IpnError.__init__(self, f"CA bundle not found: {path}")
        self.path = path
        self.detail = "not found"


class TrustStoreInvalid(TrustStoreError):
    """The CA bundle exists but could not be loaded (unreadable, not PEM)."""


# ── Input ───────────────────────────────────────────────────
class NoDataError(IpnError):
    """No POST data was given to verify."""

    code = 103

    def __init__(self) -> None:
        super().__init__("No POST data found.")


# ── Reply ───────────────────────────────────────────────────
class UnexpectedStatusError(IpnError):
    """PayPal answered with an HTTP status other than 200."""

    code = 104

    def __init__(self, status: str) -> None:
        super().__init__(f"Invalid response status: {status or '(none)'}")
        self.status = status


class UnexpectedResponseError(IpnError):
    """The reply body contained neither VERIFIED nor INVALID."""

    code = 105

    def __init__(self, response: str = "") -> None:
        super().__init__("Unexpected response from PayPal.")
        self.response = response
