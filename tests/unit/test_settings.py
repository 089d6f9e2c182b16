"""Tests for ipnverify.core.settings — runtime settings resolution."""

from __future__ import annotations

from pathlib import Path

import certifi
import pytest
from pydantic import ValidationError

from ipnverify.core.settings import Settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:  # pyright: ignore[reportUnusedFunction]
    """Keep the developer's environment and .env out of these tests."""
    for var in ("IPN_USE_SANDBOX", "IPN_TIMEOUT", "IPN_CA_BUNDLE", "IPN_TLS_COMPAT", "IPN_LOG_LEVEL", "IPN_LOG_JSON"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


def test_settings_defaults() -> None:
    s = Settings()
    assert s.use_sandbox is False
    assert s.timeout == 30.0
    assert s.tls_compat is False
    assert s.log_level == "INFO"
    assert s.log_json is True


def test_ca_bundle_defaults_to_certifi() -> None:
    s = Settings()
    assert s.ca_bundle == Path(certifi.where())


def test_ca_bundle_override(tmp_path: Path) -> None:
    bundle = tmp_path / "chain.crt"
    s = Settings(ca_bundle=bundle)
    assert s.ca_bundle == bundle


def test_live_host_and_uri() -> None:
    s = Settings()
    assert s.host == "www.paypal.com"
    assert s.post_uri == "https://www.paypal.com/cgi-bin/webscr"


def test_sandbox_host_and_uri() -> None:
    s = Settings(use_sandbox=True)
    assert s.host == "www.sandbox.paypal.com"
    assert s.post_uri == "https://www.sandbox.paypal.com/cgi-bin/webscr"


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("IPN_USE_SANDBOX", "true")
    monkeypatch.setenv("IPN_TIMEOUT", "12.5")
    monkeypatch.setenv("IPN_TLS_COMPAT", "1")
    s = Settings()
    assert s.use_sandbox is True
    assert s.timeout == 12.5
    assert s.tls_compat is True


def test_dotenv_file_is_read(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("IPN_USE_SANDBOX=true\n", encoding="utf-8")
    assert Settings().use_sandbox is True


@pytest.mark.parametrize("bad", [0, -1, -0.5])
def test_timeout_must_be_positive(bad: float) -> None:
    with pytest.raises(ValidationError):
        Settings(timeout=bad)
