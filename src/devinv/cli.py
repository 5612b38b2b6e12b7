"""
devinv command-line shell.

Commands:
  devinv init                     — create the database and default administrator
  devinv whoami                   — show the authenticated identity
  devinv devices list [--search]  — list your devices
  devinv devices add              — add a device
  devinv devices update ID        — edit one of your devices
  devinv devices remove ID        — delete one of your devices
  devinv devices export [PATH]    — write your devices as ';'-delimited text
  devinv users create USERNAME    — register a user (administrators only)
  devinv logs [--limit N]         — recent audit entries (administrators only)

Every command except ``init`` logs in first, using --username/--password,
DEVINV_USERNAME/DEVINV_PASSWORD, or an interactive prompt.
"""

import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .app import InventoryApp
from .config import Settings, settings as default_settings
from .exceptions import PermissionDeniedError, StoreUnavailableError
from .export import DEFAULT_EXPORT_FILENAME
from .schemas import DeviceForm, UserCreate

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)


class CliState:
    """Options shared by every subcommand; the app is opened on first use."""

    def __init__(self, db_path: Optional[Path], username: Optional[str], password: Optional[str]):
        self.db_path = db_path
        self.username = username
        self.password = password
        self.app: Optional[InventoryApp] = None


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _fail(message: str, code: int = 1) -> NoReturn:
    err_console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    sys.exit(code)


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def _open(state: CliState) -> InventoryApp:
    if state.app is None:
        settings: Settings = default_settings
        if state.db_path is not None:
            settings = Settings(database_path=state.db_path)
        app = InventoryApp(settings=settings)
        try:
            app.open()
        except StoreUnavailableError as exc:
            _fail(f"no database connection: {exc}", code=2)
        state.app = app
        click.get_current_context().call_on_close(app.close)
    return state.app


def _login(state: CliState) -> InventoryApp:
    app = _open(state)
    username = state.username or click.prompt("Username")
    password = state.password
    if password is None:
        password = click.prompt("Password", hide_input=True)
    if not app.session.login(username, password):
        _fail("invalid username or password")
    return app


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-V", message="devinv %(version)s")
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Database file (default: per-user app data directory)",
)
@click.option("--username", "-u", envvar="DEVINV_USERNAME", default=None)
@click.option("--password", "-p", envvar="DEVINV_PASSWORD", default=None)
@click.pass_context
def cli(ctx: click.Context, db_path: Optional[Path], username: Optional[str], password: Optional[str]) -> None:
    """Device inventory manager."""
    _configure_logging(default_settings.log_level)
    ctx.obj = CliState(db_path, username, password)


@cli.command()
@click.pass_obj
def init(state: CliState) -> None:
    """Create the database, tables and default administrator."""
    app = _open(state)
    console.print(f"Database ready at [cyan]{escape(str(app.store.path))}[/cyan]")


@cli.command()
@click.pass_obj
def whoami(state: CliState) -> None:
    """Show the authenticated identity."""
    app = _login(state)
    session = app.session
    admin = " [green](admin)[/green]" if session.is_admin() else ""
    console.print(
        f"{escape(session.username)} id={session.get_id()} role={escape(session.role)}{admin}"
    )


# ---------------------------------------------------------------------------
# devices
# ---------------------------------------------------------------------------


@cli.group()
def devices() -> None:
    """Manage your devices."""


@devices.command("list")
@click.option("--search", "-s", default="", help="Substring of name or IP address")
@click.pass_obj
def devices_list(state: CliState, search: str) -> None:
    """List your devices."""
    app = _login(state)
    records = app.my_devices(search)
    if not records:
        console.print("No devices.")
        return
    table = Table(title=f"Devices of {escape(app.session.username)}")
    for header in ("ID", "Name", "Type", "IP address", "Calibration"):
        table.add_column(header)
    for r in records:
        table.add_row(
            str(r.id), escape(r.name), escape(r.type), escape(r.ip_address), f"{r.calibration:.2f}"
        )
    console.print(table)


@devices.command("add")
@click.option("--name", prompt=True)
@click.option("--type", "device_type", default="Generic", show_default=True)
@click.option("--ip", "ip_address", prompt="IP address")
@click.option("--calibration", type=float, default=0.0, show_default=True)
@click.pass_obj
def devices_add(
    state: CliState, name: str, device_type: str, ip_address: str, calibration: float
) -> None:
    """Add a device owned by you."""
    try:
        form = DeviceForm(
            name=name, type=device_type, ip_address=ip_address, calibration=calibration
        )
    except ValidationError as exc:
        _fail(_validation_message(exc))
    app = _login(state)
    if not app.add_device(form):
        _fail("could not save device")
    console.print("[green]Device saved.[/green]")


@devices.command("update")
@click.argument("device_id", type=int)
@click.option("--name", default=None)
@click.option("--type", "device_type", default=None)
@click.option("--ip", "ip_address", default=None)
@click.option("--calibration", type=float, default=None)
@click.pass_obj
def devices_update(
    state: CliState,
    device_id: int,
    name: Optional[str],
    device_type: Optional[str],
    ip_address: Optional[str],
    calibration: Optional[float],
) -> None:
    """Edit one of your devices; omitted fields keep their value."""
    app = _login(state)
    current = app.devices.get(device_id)
    if current is None or current.user_id != app.session.get_id():
        _fail(f"device {device_id} not found")
    try:
        form = DeviceForm(
            name=current.name if name is None else name,
            type=current.type if device_type is None else device_type,
            ip_address=current.ip_address if ip_address is None else ip_address,
            calibration=current.calibration if calibration is None else calibration,
        )
    except ValidationError as exc:
        _fail(_validation_message(exc))
    if not app.update_device(device_id, form):
        _fail("could not update device")
    console.print("[green]Device updated.[/green]")


@devices.command("remove")
@click.argument("device_id", type=int)
@click.option("--yes", "-y", is_flag=True, default=False, help="Do not ask for confirmation")
@click.pass_obj
def devices_remove(state: CliState, device_id: int, yes: bool) -> None:
    """Delete one of your devices."""
    app = _login(state)
    if not yes:
        click.confirm(f"Delete device {device_id}?", abort=True)
    if not app.remove_device(device_id):
        _fail("could not delete device")
    console.print("[green]Device deleted.[/green]")


@devices.command("export")
@click.argument(
    "path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=str(Path.home() / DEFAULT_EXPORT_FILENAME),
)
@click.option("--search", "-s", default="", help="Export only matching devices")
@click.pass_obj
def devices_export(state: CliState, path: Path, search: str) -> None:
    """Write your devices as delimited text."""
    app = _login(state)
    try:
        written = app.export_devices(path, search)
    except OSError as exc:
        _fail(f"could not create file: {exc}")
    if written is None:
        _fail("no data to export")
    console.print(f"[green]Exported to[/green] {escape(str(written))}")


# ---------------------------------------------------------------------------
# users
# ---------------------------------------------------------------------------


@cli.group()
def users() -> None:
    """User administration."""


@users.command("create")
@click.argument("username")
@click.option("--role", default="user", show_default=True)
@click.option(
    "--new-password",
    prompt="New user's password",
    hide_input=True,
    confirmation_prompt=True,
)
@click.pass_obj
def users_create(state: CliState, username: str, role: str, new_password: str) -> None:
    """Register a new user (administrators only)."""
    try:
        user = UserCreate(username=username, password=new_password, role=role)
    except ValidationError as exc:
        _fail(_validation_message(exc))
    app = _login(state)
    try:
        created = app.register_user(user)
    except PermissionDeniedError:
        _fail("only administrators can create users")
    if not created:
        _fail("could not create user")
    console.print(f"[green]User {escape(user.username)} created.[/green]")


# ---------------------------------------------------------------------------
# logs
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--limit", default=50, show_default=True, help="Number of recent entries")
@click.pass_obj
def logs(state: CliState, limit: int) -> None:
    """Show recent audit log entries (administrators only)."""
    app = _login(state)
    if not app.session.is_admin():
        _fail("only administrators can read the audit log")
    table = Table(title="Audit log")
    for header in ("Time", "Category", "Message"):
        table.add_column(header)
    for entry in app.audit.recent(limit):
        table.add_row(
            entry.timestamp.isoformat(sep=" ", timespec="seconds"),
            escape(entry.category or ""),
            escape(entry.message or ""),
        )
    console.print(table)


if __name__ == "__main__":
    cli()
