"""IPN verifier runtime settings (Pydantic v2 Settings).

Centralises every configurable value so that:

* The trust store is never located by walking the filesystem.
* Environment overrides work (``IPN_USE_SANDBOX``, ``IPN_CA_BUNDLE``, etc.).
* Tests can inject values directly via ``Settings(use_sandbox=True)``.

Usage
-----
::

    from ipnverify.core.settings import Settings
    from ipnverify.verifier import IpnVerifier

    verifier = IpnVerifier.from_settings(Settings())
"""

from __future__ import annotations

from pathlib import Path

import certifi
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ipnverify.modules.transport import DEFAULT_TIMEOUT, host_for, post_uri_for


class Settings(BaseSettings):
    """All runtime configuration for the verifier.

    *ca_bundle* defaults to the CA bundle shipped with :mod:`certifi` when
    not supplied.
    """

    model_config = SettingsConfigDict(
        env_prefix="IPN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Endpoint ────────────────────────────────────────────
    use_sandbox: bool = False
    timeout: float = DEFAULT_TIMEOUT

    # ── Trust store / TLS ───────────────────────────────────
    ca_bundle: Path | None = None
    tls_compat: bool = False  # pin TLS 1.2 for legacy endpoints

    # ── Logging ─────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True  # structured JSON by default

    @field_validator("timeout")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @model_validator(mode="after")
    def _resolve_ca_bundle(self) -> "Settings":
        """Fall back to certifi's bundle if no trust store was configured."""
        if self.ca_bundle is None:
            self.ca_bundle = Path(certifi.where())
        return self

    # ── Convenience ─────────────────────────────────────────
    @property
    def host(self) -> str:
        return host_for(self.use_sandbox)

    @property
    def post_uri(self) -> str:
        """Full URI the post back goes to."""
        return post_uri_for(self.use_sandbox)
