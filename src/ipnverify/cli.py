"""ipnverify CLI — presentation layer.

Thin adapter: verification logic lives in :mod:`ipnverify.verifier`.
The CLI only maps operator intents to verifier calls and formats output.

Exit codes for ``verify``: 0 VERIFIED, 1 INVALID, 2 verification failed.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qsl

import structlog
import typer
from pydantic import ValidationError
from rich import print
from rich.markup import escape

from ipnverify.core.errors import IpnError
from ipnverify.core.logging import configure_logging
from ipnverify.core.models import VerificationStatus
from ipnverify.core.settings import Settings
from ipnverify.verifier import IpnVerifier, encode_post_data

logger = structlog.get_logger()

app = typer.Typer(help="ipnverify — verify PayPal IPN messages by posting them back.")


# ── Callback (runs before every command) ────────────────────
@app.callback(invoke_without_command=True)
def _main_callback(  # pyright: ignore[reportUnusedFunction]
    ctx: typer.Context,
    log_level: str = typer.Option("INFO", "--log-level", envvar="IPN_LOG_LEVEL", help="Log level."),
    log_json: bool = typer.Option(True, "--log-json/--log-text", envvar="IPN_LOG_JSON", help="JSON or human logs."),
) -> None:
    """Configure logging + settings, then store in context for sub-commands."""
    configure_logging(level=log_level, json_output=log_json)
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = Settings(log_level=log_level, log_json=log_json)
    except ValidationError as exc:
        print(f"[red]ERROR:[/red] invalid configuration: {escape(_describe(exc))}")
        raise typer.Exit(code=2)

    if ctx.invoked_subcommand is None:
        print(ctx.get_help())


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj["settings"]


def _describe(exc: ValidationError) -> str:
    """Summarise bad fields by their ``IPN_`` variable names."""
    return "; ".join(
        f"IPN_{'_'.join(str(part) for part in err['loc']).upper()}: {err['msg']}" for err in exc.errors()
    )


def _collect_fields(pairs: list[str] | None, body_file: Path | None) -> dict[str, str]:
    """Merge a captured form body with KEY=VALUE arguments (arguments win)."""
    fields: dict[str, str] = {}
    if body_file is not None:
        try:
            body = body_file.read_text(encoding="utf-8").strip()
        except OSError as exc:
            print(f"[red]ERROR:[/red] cannot read {body_file}: {exc}")
            raise typer.Exit(code=2)
        for key, value in parse_qsl(body, keep_blank_values=True):
            if key == "cmd":
                continue
            fields[key] = value

    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            print(f"[red]ERROR:[/red] expected KEY=VALUE, got '{escape(pair)}'")
            raise typer.Exit(code=2)
        fields[key] = value
    return fields


# ── Commands ────────────────────────────────────────────────
@app.command()
def status(ctx: typer.Context) -> None:
    """Show the resolved verifier configuration."""
    s = _settings(ctx)
    bundle_ok = s.ca_bundle is not None and s.ca_bundle.is_file()

    print("[bold]ipnverify[/bold]  v0.1.0")
    print(f"  Mode        : {'[yellow]sandbox[/yellow]' if s.use_sandbox else '[green]live[/green]'}")
    print(f"  Host        : {s.host}")
    print(f"  Post URI    : {s.post_uri}")
    print(f"  Timeout     : {s.timeout:g}s")
    print(f"  CA bundle   : {s.ca_bundle}  {'[green]OK[/green]' if bundle_ok else '[red]MISSING[/red]'}")
    print(f"  TLS         : {'pinned TLS 1.2' if s.tls_compat else 'negotiated'}")

    logger.info("status_checked", host=s.host)


@app.command()
def encode(
    pairs: list[str] | None = typer.Argument(None, help="IPN fields as KEY=VALUE."),
    body_file: Path | None = typer.Option(None, "--body-file", "-f", help="Captured form-encoded IPN body."),
) -> None:
    """Print the validation body that would be posted back (no network)."""
    fields = _collect_fields(pairs, body_file)
    if not fields:
        print("[red]ERROR:[/red] no IPN fields given.")
        raise typer.Exit(code=2)
    typer.echo(encode_post_data(fields))


@app.command(name="verify")
def verify_cmd(
    ctx: typer.Context,
    pairs: list[str] | None = typer.Argument(None, help="IPN fields as KEY=VALUE."),
    body_file: Path | None = typer.Option(None, "--body-file", "-f", help="Captured form-encoded IPN body."),
    sandbox: bool | None = typer.Option(None, "--sandbox/--live", help="Target host (default from IPN_USE_SANDBOX)."),
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Seconds to wait for PayPal."),
    report: bool = typer.Option(False, "--report/--no-report", help="Print the text report afterwards."),
    redact: bool = typer.Option(True, "--redact/--no-redact", help="Mask buyer details in the report."),
) -> None:
    """Post IPN fields back to PayPal and show the verdict."""
    s = _settings(ctx)
    fields = _collect_fields(pairs, body_file)

    overrides: dict[str, object] = {}
    if sandbox is not None:
        overrides["use_sandbox"] = sandbox
    if timeout is not None:
        overrides["timeout"] = timeout
    try:
        verifier = IpnVerifier.from_settings(s, **overrides)
    except (TypeError, ValueError) as exc:
        print(f"[red]ERROR:[/red] {exc}")
        raise typer.Exit(code=2)

    try:
        verified = verifier.verify(fields)
    except IpnError as exc:
        print(f"[red]ERROR:[/red] ({exc.code}) {escape(str(exc))}")
        print(f"  Status      : {verifier.get_verification_status_string()}")
        if report and verifier.get_post_uri():
            typer.echo(verifier.get_text_report(redact=redact))
        raise typer.Exit(code=2)

    color = "green" if verified else "red"
    print(f"[{color}]{verifier.get_verification_status_string()}[/{color}]  {verifier.get_post_uri()}")
    if report:
        typer.echo(verifier.get_text_report(redact=redact))

    if verifier.status is VerificationStatus.INVALID:
        raise typer.Exit(code=1)


# ── Entrypoint ──────────────────────────────────────────────
def main() -> None:  # noqa: D103
    app()
