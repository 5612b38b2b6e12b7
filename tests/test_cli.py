import pytest
from click.testing import CliRunner

from devinv.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, settings, monkeypatch):
    monkeypatch.setattr("devinv.cli.default_settings", settings)

    def _invoke(*args, username="admin", password="1234", input=None):
        base = ["--username", username, "--password", password]
        return runner.invoke(cli, base + list(args), input=input)

    return _invoke


def test_init_reports_database_path(invoke, settings):
    result = invoke("init")
    assert result.exit_code == 0, result.output
    assert settings.resolved_database_path().exists()


def test_whoami_shows_admin(invoke):
    result = invoke("whoami")
    assert result.exit_code == 0, result.output
    assert "admin" in result.output
    assert "Administrator" in result.output


def test_bad_credentials(invoke):
    result = invoke("whoami", password="wrong")
    assert result.exit_code == 1
    assert "invalid username or password" in result.output


def test_device_lifecycle(invoke, tmp_path):
    result = invoke(
        "devices", "add", "--name", "Sensor1", "--type", "Sensor",
        "--ip", "192.168.1.50", "--calibration", "1.5",
    )
    assert result.exit_code == 0, result.output
    assert "Device saved." in result.output

    result = invoke("devices", "list")
    assert result.exit_code == 0, result.output
    assert "Sensor1" in result.output
    assert "192.168.1.50" in result.output

    result = invoke("devices", "update", "1", "--name", "Pump")
    assert result.exit_code == 0, result.output

    out = tmp_path / "export.csv"
    result = invoke("devices", "export", str(out))
    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8").splitlines()[1] == "1;1;Pump;Sensor;192.168.1.50;1.5"

    result = invoke("devices", "remove", "1", input="y\n")
    assert result.exit_code == 0, result.output
    assert "Device deleted." in result.output

    result = invoke("devices", "list")
    assert "No devices." in result.output


def test_invalid_ip_is_rejected_before_saving(invoke):
    result = invoke("devices", "add", "--name", "Bad", "--ip", "999.1.1.1")
    assert result.exit_code == 1
    assert "not an IPv4 address" in result.output
    assert "No devices." in invoke("devices", "list").output


def test_update_unknown_device(invoke):
    result = invoke("devices", "update", "42", "--name", "X")
    assert result.exit_code == 1
    assert "device 42 not found" in result.output


def test_export_without_data(invoke, tmp_path):
    result = invoke("devices", "export", str(tmp_path / "x.csv"))
    assert result.exit_code == 1
    assert "no data to export" in result.output


def test_users_create_is_admin_only(invoke):
    result = invoke("users", "create", "bob", "--role", "user", "--new-password", "pw")
    assert result.exit_code == 0, result.output
    assert "User bob created." in result.output

    result = invoke("users", "create", "bob", "--new-password", "pw")
    assert result.exit_code == 1
    assert "could not create user" in result.output

    result = invoke("users", "create", "eve", "--new-password", "pw", username="bob", password="pw")
    assert result.exit_code == 1
    assert "only administrators can create users" in result.output


def test_logs_show_logins(invoke):
    invoke("whoami")
    result = invoke("logs")
    assert result.exit_code == 0, result.output
    assert "Login" in result.output


def test_unopenable_database_exits_with_2(runner, tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    result = runner.invoke(cli, ["--db", str(blocker / "db.sqlite"), "init"])
    assert result.exit_code == 2
    assert "no database connection" in result.output
