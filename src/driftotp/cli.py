"""driftotp CLI - Command-line interface for pairing and verifying a token."""

import logging
import os
from pathlib import Path
from typing import Any

import typer
import yaml
from rich.console import Console
from rich.table import Table

from driftotp.models import load_state, save_state
from driftotp.totp import Clock, HOTPGenerator, encode_secret, generate_secret
from driftotp.verifier import InvalidCodeError, TimeDriftVerifier, VerifierConfig

app = typer.Typer(
    name="driftotp",
    help="Drift-tolerant TOTP verification",
)
console = Console()

# Default paths
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "driftotp"
DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "driftotp"

EXIT_MISMATCH = 1
EXIT_INVALID_CODE = 2


def get_config_path(ctx: typer.Context) -> Path:
    return Path(ctx.obj["config_path"]).expanduser()


def default_config() -> dict[str, Any]:
    return {
        "totp": {
            "secret_path": str(DEFAULT_DATA_DIR / "secret"),
            "digits": 6,
            "period": 30,
        },
        "verifier": {
            "look_ahead_interval": 0,
            "look_behind_interval": 1,
            "state_path": str(DEFAULT_DATA_DIR / "state.json"),
        },
    }


def load_config(config_path: Path) -> dict[str, Any]:
    """Load config from file, falling back to defaults per key."""
    config = default_config()
    if config_path.exists():
        loaded = yaml.safe_load(config_path.read_text()) or {}
        for section, values in loaded.items():
            config.setdefault(section, {}).update(values or {})
    return config


def save_config(config_path: Path, config: dict[str, Any]) -> None:
    """Save config to file."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(yaml.dump(config, default_flow_style=False))


def _secret_path(config: dict[str, Any]) -> Path:
    return Path(config["totp"]["secret_path"]).expanduser()


def _state_path(config: dict[str, Any]) -> Path:
    return Path(config["verifier"]["state_path"]).expanduser()


def _verifier_config(config: dict[str, Any], time_drift_correction: int = 0) -> VerifierConfig:
    """Window bounds always come from the config file, never from saved state."""
    section = config["verifier"]
    try:
        return VerifierConfig(
            look_ahead_interval=section.get("look_ahead_interval", 0),
            look_behind_interval=section.get("look_behind_interval", 1),
            time_drift_correction=time_drift_correction,
        )
    except ValueError as e:
        console.print(f"[red]Invalid verifier config: {e}[/red]")
        raise typer.Exit(1)


def build_verifier(config: dict[str, Any]) -> TimeDriftVerifier:
    """Create a verifier from config, restoring any persisted drift."""
    secret_path = _secret_path(config)
    if not secret_path.exists():
        console.print("[red]No TOTP secret found. Run 'driftotp init' first.[/red]")
        raise typer.Exit(1)

    totp_config = config["totp"]
    state = load_state(_state_path(config))

    return TimeDriftVerifier(
        secret_path.read_text().strip(),
        clock=Clock(period=totp_config.get("period", 30)),
        generator=HOTPGenerator(digits=totp_config.get("digits", 6)),
        config=_verifier_config(config, state.time_drift_correction if state else 0),
    )


def _check(ctx: typer.Context, code: str, train: bool) -> None:
    config = load_config(get_config_path(ctx))
    verifier = build_verifier(config)

    try:
        ok = verifier.train(code) if train else verifier.verify(code)
    except InvalidCodeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(EXIT_INVALID_CODE)

    if not ok:
        console.print("[red]Invalid code.[/red]")
        raise typer.Exit(EXIT_MISMATCH)

    save_state(_state_path(config), verifier.state())
    console.print(
        f"[green]Code accepted.[/green] Drift correction: {verifier.time_drift_correction}"
    )


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_DIR / "config.yaml", "--config", "-c", help="Config file path"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Drift-tolerant TOTP verification."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    ctx.obj = {"config_path": config_path}


@app.command()
def init(
    ctx: typer.Context,
    account: str = typer.Option("driftotp", "--account", "-a", help="Account name shown in the app"),
    issuer: str = typer.Option(None, "--issuer", "-i", help="Issuer shown in the app"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing config and secret"),
):
    """Create config and a new TOTP secret, then pair an authenticator."""
    config_path = get_config_path(ctx)
    if config_path.exists() and not force:
        if not typer.confirm("Config already exists. Overwrite?"):
            raise typer.Abort()

    config = load_config(config_path)
    secret = encode_secret(generate_secret())
    verifier = TimeDriftVerifier(
        secret,
        clock=Clock(period=config["totp"]["period"]),
        generator=HOTPGenerator(digits=config["totp"]["digits"]),
        config=_verifier_config(config),
    )

    console.print("\n[bold]TOTP Setup[/bold]\n")
    console.print("Add this token to your authenticator app:\n")
    console.print(f"[bold]{verifier.uri(account, issuer=issuer)}[/bold]\n")

    # Pair with a wide search so a hardware token with drift is accepted
    max_attempts = 3
    paired = False

    for attempt in range(max_attempts):
        code = typer.prompt("Code")
        try:
            paired = verifier.train(code)
        except InvalidCodeError as e:
            console.print(f"[red]{e}[/red]")
        if paired:
            break
        remaining = max_attempts - attempt - 1
        if remaining > 0:
            console.print(f"[red]Invalid code. {remaining} attempts remaining.[/red]")
        else:
            console.print("[red]Too many failed attempts.[/red]")

    if not paired:
        console.print("\n[red]Pairing failed. Secret was not saved.[/red]")
        raise typer.Exit(1)

    # Save secret only after successful pairing
    save_config(config_path, config)
    secret_path = _secret_path(config)
    secret_path.parent.mkdir(parents=True, exist_ok=True)
    secret_path.write_text(secret)
    os.chmod(secret_path, 0o600)
    save_state(_state_path(config), verifier.state())

    console.print("[green]TOTP pairing successful![/green]")
    console.print(f"Drift correction: {verifier.time_drift_correction}")
    console.print(f"Secret saved to: {secret_path}")


@app.command()
def now(ctx: typer.Context):
    """Show the code for the current interval."""
    verifier = build_verifier(load_config(get_config_path(ctx)))
    console.print(f"Current code: [bold]{verifier.now()}[/bold]")


@app.command()
def verify(ctx: typer.Context, code: str = typer.Argument(..., help="Code to check")):
    """Check a code within the configured window."""
    _check(ctx, code, train=False)


@app.command()
def train(ctx: typer.Context, code: str = typer.Argument(..., help="Code to check")):
    """Check a code within +/- 60 intervals and resynchronise drift."""
    _check(ctx, code, train=True)


@app.command()
def uri(
    ctx: typer.Context,
    account: str = typer.Argument(..., help="Account name"),
    issuer: str = typer.Option(None, "--issuer", "-i", help="Issuer name"),
    qr: bool = typer.Option(False, "--qr", help="Print as QR code"),
):
    """Print the otpauth:// provisioning URI."""
    verifier = build_verifier(load_config(get_config_path(ctx)))
    setup_uri = verifier.uri(account, issuer=issuer)

    if qr:
        try:
            import qrcode
        except ImportError:
            console.print("[yellow]Install qrcode for QR display: pip install qrcode[/yellow]")
            raise typer.Exit(1)
        code = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_L)
        code.add_data(setup_uri)
        code.make(fit=True)
        code.print_ascii(invert=True)

    console.print(setup_uri)


@app.command()
def status(ctx: typer.Context):
    """Show the verifier bounds in use and the persisted drift."""
    config = load_config(get_config_path(ctx))
    verifier_config = _verifier_config(config)
    state = load_state(_state_path(config))

    table = Table(title="driftotp")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Secret", str(_secret_path(config)))
    table.add_row("Period", f"{config['totp']['period']}s")
    table.add_row("Digits", str(config["totp"]["digits"]))
    table.add_row("Look-ahead", str(verifier_config.look_ahead_interval))
    table.add_row("Look-behind", str(verifier_config.look_behind_interval))
    table.add_row("Drift correction", str(state.time_drift_correction if state else 0))
    table.add_row("Updated", state.updated_at.isoformat() if state else "never")
    console.print(table)


if __name__ == "__main__":
    app()
