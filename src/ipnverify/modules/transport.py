"""HTTPS transport for the IPN post back.

Builds the one ``httpx.Client`` a verification attempt uses:

* Peer certificate and hostname are checked against an explicit CA
  bundle (``ca_bundle``), never the system store alone.  The default is
  the bundle shipped with :mod:`certifi`.
* Redirects are never followed; a 3xx reply surfaces as a non-200 status.
* A single timeout bounds the whole exchange.
* ``tls_compat=True`` pins negotiation to TLS 1.2 for endpoints that
  choke on newer handshakes.  Off by default.

Tests pass an ``httpx.MockTransport`` through *transport*; the trust
store is not loaded in that case.
"""

from __future__ import annotations

import ssl
from pathlib import Path

import certifi
import httpx

from ipnverify.core.errors import TrustStoreInvalid, TrustStoreMissing

LIVE_HOST = "www.paypal.com"
SANDBOX_HOST = "www.sandbox.paypal.com"
VALIDATE_PATH = "/cgi-bin/webscr"

DEFAULT_TIMEOUT = 30.0
USER_AGENT = "ipnverify/0.1.0"

# Tag shown in text reports next to the post URI.
TRANSPORT_TAG = "httpx"


def host_for(use_sandbox: bool) -> str:
    return SANDBOX_HOST if use_sandbox else LIVE_HOST


def post_uri_for(use_sandbox: bool) -> str:
    return f"https://{host_for(use_sandbox)}{VALIDATE_PATH}"


def build_ssl_context(ca_bundle: Path | str | None = None, *, tls_compat: bool = False) -> ssl.SSLContext:
    """Return a verifying SSL context trusting only *ca_bundle*.

    Raises
    ------
    TrustStoreMissing
        If *ca_bundle* does not point to an existing file.
    TrustStoreInvalid
        If the file cannot be read or holds no usable certificate.
    """
    path = Path(ca_bundle) if ca_bundle is not None else Path(certifi.where())
    if not path.is_file():
        raise TrustStoreMissing(str(path))

    try:
        ctx = ssl.create_default_context(cafile=str(path))
    except (ssl.SSLError, OSError) as exc:
        raise TrustStoreInvalid(str(path), str(exc)) from exc
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    if tls_compat:
        ctx.minimum_version = ssl.TLSVersion.TLSv1_2
        ctx.maximum_version = ssl.TLSVersion.TLSv1_2
    return ctx


def open_client(
    *,
    timeout: float = DEFAULT_TIMEOUT,
    ca_bundle: Path | str | None = None,
    tls_compat: bool = False,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Open a client configured for a single post back.

    The caller owns the client and must close it (use it as a context
    manager).
    """
    headers = {"User-Agent": USER_AGENT}
    if transport is not None:
        return httpx.Client(
            transport=transport,
            follow_redirects=False,
            timeout=timeout,
            headers=headers,
        )
    return httpx.Client(
        verify=build_ssl_context(ca_bundle, tls_compat=tls_compat),
        follow_redirects=False,
        timeout=timeout,
        headers=headers,
    )


def raw_response(response: httpx.Response) -> str:
    """Render *response* as it came over the wire: status line, headers, body."""
    lines = [f"{response.http_version} {response.status_code} {response.reason_phrase}".rstrip()]
    lines.extend(
        f"{name.decode('latin-1')}: {value.decode('latin-1')}" for name, value in response.headers.raw
    )
    return "\r\n".join(lines) + "\r\n\r\n" + response.text
