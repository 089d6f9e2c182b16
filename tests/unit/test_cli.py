"""Tests for ipnverify.cli — operator commands.

The post back is intercepted by patching ``open_client`` with a client
over ``httpx.MockTransport``; nothing leaves the process.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

import ipnverify.verifier as verifier_mod
from ipnverify.cli import app

runner = CliRunner()

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:  # pyright: ignore[reportUnusedFunction]
    for var in ("IPN_USE_SANDBOX", "IPN_TIMEOUT", "IPN_CA_BUNDLE", "IPN_TLS_COMPAT"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def paypal(monkeypatch: pytest.MonkeyPatch) -> Callable[[Handler], list[httpx.Request]]:
    """Route the verifier's client through a mock handler; return seen requests."""

    def install(handler: Handler) -> list[httpx.Request]:
        seen: list[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        def fake_open_client(**kwargs: object) -> httpx.Client:
            return httpx.Client(transport=httpx.MockTransport(recording), follow_redirects=False)

        monkeypatch.setattr(verifier_mod, "open_client", fake_open_client)
        return seen

    return install


def _invoke(*args: str):
    return runner.invoke(app, ["--log-text", *args])


# ── encode ──────────────────────────────────────────────────
class TestEncode:
    def test_pairs(self) -> None:
        result = _invoke("encode", "txn_id=51991334", "payment_status=Completed")
        assert result.exit_code == 0
        assert "cmd=_notify-validate&txn_id=51991334&payment_status=Completed" in result.output

    def test_body_file(self, tmp_path: Path) -> None:
        body = tmp_path / "ipn.txt"
        body.write_text("txn_id=9&payer_email=a%40b.com&memo=\n", encoding="utf-8")
        result = _invoke("encode", "--body-file", str(body))
        assert result.exit_code == 0
        assert "cmd=_notify-validate&txn_id=9&payer_email=a%40b.com&memo=" in result.output

    def test_control_field_in_body_file_not_duplicated(self, tmp_path: Path) -> None:
        body = tmp_path / "ipn.txt"
        body.write_text("cmd=_notify-validate&txn_id=9", encoding="utf-8")
        result = _invoke("encode", "-f", str(body))
        assert result.output.count("cmd=") == 1

    def test_bad_pair(self) -> None:
        result = _invoke("encode", "txn_id")
        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output

    def test_nothing_given(self) -> None:
        result = _invoke("encode")
        assert result.exit_code == 2


# ── verify ──────────────────────────────────────────────────
class TestVerifyCommand:
    def test_verified_exit_zero(self, paypal) -> None:
        seen = paypal(lambda request: httpx.Response(200, text="VERIFIED"))
        result = _invoke("verify", "--sandbox", "txn_id=51991334", "payment_status=Completed")
        assert result.exit_code == 0, result.output
        assert "VERIFIED" in result.output
        assert str(seen[0].url) == "https://www.sandbox.paypal.com/cgi-bin/webscr"

    def test_live_by_default(self, paypal) -> None:
        seen = paypal(lambda request: httpx.Response(200, text="VERIFIED"))
        _invoke("verify", "txn_id=1")
        assert str(seen[0].url) == "https://www.paypal.com/cgi-bin/webscr"

    def test_sandbox_from_env(self, paypal, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IPN_USE_SANDBOX", "true")
        seen = paypal(lambda request: httpx.Response(200, text="VERIFIED"))
        _invoke("verify", "txn_id=1")
        assert seen[0].url.host == "www.sandbox.paypal.com"

    def test_invalid_exit_one(self, paypal) -> None:
        paypal(lambda request: httpx.Response(200, text="INVALID"))
        result = _invoke("verify", "txn_id=1")
        assert result.exit_code == 1
        assert "INVALID" in result.output

    def test_error_exit_two(self, paypal) -> None:
        paypal(lambda request: httpx.Response(500, text="oops"))
        result = _invoke("verify", "txn_id=1")
        assert result.exit_code == 2
        assert "104" in result.output
        assert "ERROR" in result.output

    def test_no_fields_exit_two(self, paypal) -> None:
        seen = paypal(lambda request: httpx.Response(200, text="VERIFIED"))
        result = _invoke("verify")
        assert result.exit_code == 2
        assert "NO_DATA" in result.output
        assert seen == []

    def test_report_redacted_by_default(self, paypal) -> None:
        paypal(lambda request: httpx.Response(200, text="VERIFIED"))
        result = _invoke("verify", "--report", "txn_id=1", "payer_email=buyer@example.com")
        assert result.exit_code == 0
        assert "-" * 80 in result.output
        assert "[REDACTED]" in result.output

    def test_report_unredacted(self, paypal) -> None:
        paypal(lambda request: httpx.Response(200, text="VERIFIED"))
        result = _invoke("verify", "--report", "--no-redact", "txn_id=1", "payer_email=buyer@example.com")
        assert f"{'payer_email':<25}buyer@example.com" in result.output

    def test_bad_timeout(self, paypal) -> None:
        paypal(lambda request: httpx.Response(200, text="VERIFIED"))
        result = _invoke("verify", "--timeout", "0", "txn_id=1")
        assert result.exit_code == 2


# ── status ──────────────────────────────────────────────────
def test_status_live() -> None:
    result = _invoke("status")
    assert result.exit_code == 0
    assert "https://www.paypal.com/cgi-bin/webscr" in result.output
    assert "negotiated" in result.output


def test_status_sandbox_tls_compat(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("IPN_USE_SANDBOX", "1")
    monkeypatch.setenv("IPN_TLS_COMPAT", "1")
    result = _invoke("status")
    assert "www.sandbox.paypal.com" in result.output
    assert "TLS 1.2" in result.output


# ── bad environment ─────────────────────────────────────────
@pytest.mark.parametrize(
    ("var", "value"),
    [("IPN_TIMEOUT", "-1"), ("IPN_TIMEOUT", "soon"), ("IPN_USE_SANDBOX", "maybe")],
)
def test_bad_env_exits_two_with_message(monkeypatch: pytest.MonkeyPatch, var: str, value: str) -> None:
    monkeypatch.setenv(var, value)
    result = _invoke("status")
    assert result.exit_code == 2
    assert "ERROR:" in result.output
    assert var in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)
