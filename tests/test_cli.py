"""Tests for the command-line interface."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from lm import __version__
from lm.cli import (
    CliError,
    _cmd_machines,
    _save_refreshed_tokens,
    build_parser,
    format_table,
    main,
    next_poll_delay,
    resolve_serial,
    sign_in,
    wait_for_machine_ready,
)
from lm.config import Config, load_config, load_installation_key, save_config, save_installation_key
from lm.errors import ApiError, AuthenticationError
from lm.types import Credentials, Machine, MachineStatus


# ============================================================
# Helpers
# ============================================================

def status_of(machine_status, boiler_status=None):
    widgets = [{"code": "CMMachineStatus", "output": {"status": machine_status}}]
    if boiler_status:
        widgets.append({"code": "CMCoffeeBoiler", "output": {"status": boiler_status}})
    return MachineStatus.from_api({"widgets": widgets})


def make_machines(*machines):
    service = MagicMock()
    service.list = AsyncMock(return_value=list(machines))
    service.get_status = AsyncMock()
    return service


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


# ============================================================
# Tests: parser
# ============================================================

class TestParser:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_on_options(self):
        args = build_parser().parse_args(["on", "-s", "GS012345", "--wait"])
        assert args.command == "on"
        assert args.serial == "GS012345"
        assert args.wait is True

    def test_login_options(self):
        args = build_parser().parse_args(["login", "-u", "me@example.com"])
        assert args.login_username == "me@example.com"
        assert args.login_password is None

    def test_global_credentials_from_env(self, monkeypatch):
        monkeypatch.setenv("LM_USERNAME", "env@example.com")
        monkeypatch.setenv("LM_PASSWORD", "pw")
        args = build_parser().parse_args(["machines"])
        assert args.username == "env@example.com"
        assert args.password == "pw"


# ============================================================
# Tests: helpers
# ============================================================

class TestFormatTable:
    def test_columns_padded(self):
        table = format_table(["Name", "Serial"], [["Kitchen (GS3)", "GS1"]])
        lines = table.splitlines()
        assert lines[0] == "+---------------+--------+"
        assert lines[1] == "| Name          | Serial |"
        assert lines[3] == "| Kitchen (GS3) | GS1    |"
        assert lines[-1] == lines[0]

    def test_no_rows(self):
        assert len(format_table(["A"], []).splitlines()) == 4


class TestNextPollDelay:
    def test_doubles(self):
        assert next_poll_delay(2.0) == 4.0

    def test_capped(self):
        assert next_poll_delay(20.0) == 30.0
        assert next_poll_delay(4.0, max_delay=5.0) == 5.0


class TestResolveSerial:
    @pytest.mark.asyncio
    async def test_explicit_serial(self):
        machines = make_machines()
        assert await resolve_serial(machines, "GS1") == "GS1"
        machines.list.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_machine(self):
        machines = make_machines(Machine(serial_number="GS1"))
        assert await resolve_serial(machines, None) == "GS1"

    @pytest.mark.asyncio
    async def test_no_machines(self):
        with pytest.raises(CliError, match="No machines"):
            await resolve_serial(make_machines(), None)

    @pytest.mark.asyncio
    async def test_multiple_machines(self):
        machines = make_machines(Machine(serial_number="A"), Machine(serial_number="B"))
        with pytest.raises(CliError, match="--serial"):
            await resolve_serial(machines, None)


class TestWaitForMachineReady:
    @pytest.mark.asyncio
    async def test_polls_until_ready(self, capsys):
        machines = make_machines()
        machines.get_status.side_effect = [
            status_of("StandBy"),
            status_of("PoweredOn", "HeatingUp"),
            status_of("PoweredOn", "Ready"),
        ]
        sleep = FakeSleep()

        await wait_for_machine_ready(machines, "GS1", sleep=sleep, initial_delay=1.0, max_delay=3.0)

        assert sleep.delays == [1.0, 1.0, 2.0]
        out = capsys.readouterr().out
        assert "Machine starting up..." in out
        assert "Machine is ready" in out

    @pytest.mark.asyncio
    async def test_transient_errors_keep_polling(self):
        machines = make_machines()
        machines.get_status.side_effect = [
            ApiError("Failed to fetch machine status: boom", 500),
            status_of("PoweredOn", "Ready"),
        ]

        await wait_for_machine_ready(machines, "GS1", sleep=FakeSleep())

        assert machines.get_status.await_count == 2

    @pytest.mark.asyncio
    async def test_authentication_error_stops(self):
        machines = make_machines()
        machines.get_status.side_effect = AuthenticationError("expired", 401)

        with pytest.raises(AuthenticationError):
            await wait_for_machine_ready(machines, "GS1", sleep=FakeSleep())

    @pytest.mark.asyncio
    async def test_repeated_message_printed_once(self, capsys):
        machines = make_machines()
        machines.get_status.side_effect = [
            status_of("StandBy"),
            status_of("StandBy"),
            status_of("PoweredOn", "Ready"),
        ]

        await wait_for_machine_ready(machines, "GS1", sleep=FakeSleep())

        assert capsys.readouterr().out.count("Machine starting up...") == 1


# ============================================================
# Tests: sign-in
# ============================================================

class TestSignIn:
    @pytest.mark.asyncio
    async def test_new_installation_registered_and_saved(self, config_path):
        auth = MagicMock()
        auth.register_client = AsyncMock()
        auth.login = AsyncMock(return_value=Credentials("me@example.com", "a", "r"))

        await sign_in(auth, "me@example.com", "pw")

        registered = auth.register_client.call_args[0][0]
        assert load_installation_key() == registered
        auth.login.assert_awaited_once_with("me@example.com", "pw", registered)

    @pytest.mark.asyncio
    async def test_rejected_registration_not_saved(self, config_path):
        auth = MagicMock()
        auth.register_client = AsyncMock(side_effect=AuthenticationError("Registration failed: x", 500))
        auth.login = AsyncMock()

        with pytest.raises(AuthenticationError):
            await sign_in(auth, "me@example.com", "pw")

        assert load_installation_key() is None
        auth.login.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_corrupted_key_replaced(self, config_path):
        config_path.write_text(
            "installation_key:\n"
            "  secret: AAAA\n"
            "  private_key: AAAA\n"
            "  installation_id: x\n"
        )
        auth = MagicMock()
        auth.register_client = AsyncMock()
        auth.login = AsyncMock(return_value=Credentials("me@example.com", "a", "r"))

        await sign_in(auth, "me@example.com", "pw")

        registered = auth.register_client.call_args[0][0]
        assert registered.installation_id != "x"
        assert load_installation_key() == registered
        auth.login.assert_awaited_once_with("me@example.com", "pw", registered)

    @pytest.mark.asyncio
    async def test_existing_key_reused(self, config_path, installation_key):
        save_installation_key(installation_key)
        auth = MagicMock()
        auth.register_client = AsyncMock()
        auth.login = AsyncMock(return_value=Credentials("me@example.com", "a", "r"))

        await sign_in(auth, "me@example.com", "pw")

        auth.register_client.assert_not_awaited()
        auth.login.assert_awaited_once_with("me@example.com", "pw", installation_key)


# ============================================================
# Tests: main
# ============================================================

class TestMain:
    def test_not_logged_in(self, config_path, monkeypatch, capsys):
        monkeypatch.delenv("LM_USERNAME", raising=False)
        monkeypatch.delenv("LM_PASSWORD", raising=False)

        assert main(["machines"]) == 1
        assert "lm login" in capsys.readouterr().err

    def test_logout(self, config_path, installation_key, capsys):
        save_installation_key(installation_key)

        assert main(["logout"]) == 0
        assert not config_path.exists()
        assert "Logged out" in capsys.readouterr().out


# ============================================================
# Tests: machine commands through main
# ============================================================

def make_fake_client(*machines):
    """LaMarzoccoClient stand-in usable as an async context manager."""
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.machines = make_machines(*machines)
    client.machines.turn_on = AsyncMock()
    client.machines.turn_off = AsyncMock()
    return client


@pytest.fixture
def stored_credentials(config_path, installation_key):
    save_config(
        Config(
            username="me@example.com",
            access_token="access",
            refresh_token="refresh",
            installation_key=installation_key,
        )
    )
    return config_path


@pytest.fixture
def patch_client(monkeypatch):
    """Replace LaMarzoccoClient in the CLI; returns the constructor mock."""
    def install(client):
        factory = MagicMock(return_value=client)
        monkeypatch.setattr("lm.cli.LaMarzoccoClient", factory)
        return factory
    return install


class TestMachinesCommand:
    def test_table_rows(self, stored_credentials, patch_client, capsys):
        client = make_fake_client(
            Machine(serial_number="OFF1", connected=False, model="GS3", name="Office"),
            Machine(serial_number="ERR1", connected=True, model="Linea", name="Bar"),
            Machine(serial_number="ON1", connected=True, model="Micra", name="Kitchen"),
        )
        client.machines.get_status.side_effect = [
            ApiError("Failed to fetch machine status: boom", 500),
            status_of("PoweredOn", "Ready"),
        ]
        patch_client(client)

        assert main(["machines"]) == 0

        out = capsys.readouterr().out
        rows = {}
        for line in out.splitlines()[3:-1]:
            _, _, serial, status, _ = line.split("|")
            rows[serial.strip()] = status.strip()
        assert rows == {"OFF1": "Unavailable", "ERR1": "Unknown", "ON1": "On (Ready)"}
        assert client.machines.get_status.await_count == 2

    def test_no_machines(self, stored_credentials, patch_client, capsys):
        patch_client(make_fake_client())

        assert main(["machines"]) == 0
        assert "No machines" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_authentication_error_not_swallowed(self):
        client = make_fake_client(Machine(serial_number="ON1", connected=True))
        client.machines.get_status.side_effect = AuthenticationError("expired", 401)

        with pytest.raises(AuthenticationError):
            await _cmd_machines(client, build_parser().parse_args(["machines"]))


class TestPowerCommands:
    def test_on_single_machine(self, stored_credentials, patch_client, capsys):
        client = make_fake_client(Machine(serial_number="GS1", connected=True))
        patch_client(client)

        assert main(["on"]) == 0

        client.machines.turn_on.assert_awaited_once_with("GS1")
        assert "GS1 turned on" in capsys.readouterr().out

    def test_off_explicit_serial(self, stored_credentials, patch_client, capsys):
        client = make_fake_client()
        patch_client(client)

        assert main(["off", "-s", "GS9"]) == 0

        client.machines.list.assert_not_awaited()
        client.machines.turn_off.assert_awaited_once_with("GS9")
        assert "standby" in capsys.readouterr().out

    def test_on_with_several_machines_fails(self, stored_credentials, patch_client, capsys):
        client = make_fake_client(Machine(serial_number="A"), Machine(serial_number="B"))
        patch_client(client)

        assert main(["on"]) == 1

        client.machines.turn_on.assert_not_awaited()
        assert "--serial" in capsys.readouterr().err


class TestStoredCredentials:
    def test_invalid_stored_credentials_cleared(self, stored_credentials, patch_client, capsys):
        client = make_fake_client()
        client.machines.list.side_effect = AuthenticationError(
            "Authentication failed. Please run 'lm login' again.", 401
        )
        patch_client(client)

        assert main(["machines"]) == 1

        assert not stored_credentials.exists()
        assert "Stored credentials are invalid" in capsys.readouterr().err

    def test_refreshed_tokens_saved_for_stored_credentials(self, stored_credentials, patch_client):
        factory = patch_client(make_fake_client())

        assert main(["machines"]) == 0

        callback = factory.call_args.kwargs["on_tokens_refreshed"]
        assert callback is _save_refreshed_tokens

    def test_save_refreshed_tokens_writes_config(self, stored_credentials, installation_key):
        _save_refreshed_tokens(Credentials("me@example.com", "access-2", "refresh-2", installation_key))

        loaded = load_config()
        assert loaded.access_token == "access-2"
        assert loaded.refresh_token == "refresh-2"
        assert loaded.installation_key == installation_key

    def test_one_off_credentials_not_saved(self, config_path, patch_client, monkeypatch, capsys):
        monkeypatch.setenv("LM_USERNAME", "me@example.com")
        monkeypatch.setenv("LM_PASSWORD", "pw")
        auth = MagicMock()
        auth.__aenter__ = AsyncMock(return_value=auth)
        auth.__aexit__ = AsyncMock(return_value=False)
        monkeypatch.setattr("lm.cli.AuthenticationClient", MagicMock(return_value=auth))
        monkeypatch.setattr(
            "lm.cli.sign_in",
            AsyncMock(return_value=Credentials("me@example.com", "a", "r")),
        )
        client = make_fake_client()
        client.machines.list.side_effect = AuthenticationError("expired", 401)
        factory = patch_client(client)

        assert main(["machines"]) == 1

        assert factory.call_args.kwargs["on_tokens_refreshed"] is None
        err = capsys.readouterr().err
        assert "expired" in err
        assert "Stored credentials" not in err
