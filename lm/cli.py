"""
Command-line interface

Usage:
    lm login [-u USERNAME] [-p PASSWORD]   # Register this installation and store tokens
    lm logout                              # Forget stored credentials
    lm machines                            # List machines and their status
    lm on [-s SERIAL] [--wait]             # Turn a machine on
    lm off [-s SERIAL]                     # Switch a machine to standby
"""

import argparse
import asyncio
import getpass
import logging
import os
import sys
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from . import __version__
from .client import LaMarzoccoClient
from .config import (
    Config,
    clear_config,
    get_config_path,
    load_config,
    load_installation_key,
    save_config,
    save_installation_key,
)
from .crypto.installation_key import (
    InstallationKey,
    generate_installation_id,
    generate_installation_key,
)
from .errors import AuthenticationError, ConfigError, KeyDecodingError, LmError
from .services.auth import AuthenticationClient
from .services.machines import MachineService
from .types import Credentials

logger = logging.getLogger(__name__)

NOT_LOGGED_IN_MESSAGE = (
    "You don't seem to be logged in. "
    "Please run 'lm login' or provide --username and --password."
)

READY_STATUS = "On (Ready)"
INITIAL_POLL_DELAY = 2.0
MAX_POLL_DELAY = 30.0


class CliError(LmError):
    """User-facing CLI error"""

    def __init__(self, message: str):
        super().__init__("CLI", message)


# ─── Parser ──────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lm",
        description="A CLI for controlling La Marzocco espresso machines",
    )
    parser.add_argument("--version", action="version", version=f"lm {__version__}")
    parser.add_argument(
        "-u",
        "--username",
        default=os.environ.get("LM_USERNAME"),
        help="La Marzocco account username (env: LM_USERNAME)",
    )
    parser.add_argument(
        "-p",
        "--password",
        default=os.environ.get("LM_PASSWORD"),
        help="La Marzocco account password (env: LM_PASSWORD)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    login = subparsers.add_parser(
        "login", help="Log in and store credentials for future use"
    )
    login.add_argument("-u", "--username", dest="login_username", help="Account username")
    login.add_argument(
        "-p",
        "--password",
        dest="login_password",
        help="Account password (prompted if omitted; never stored)",
    )

    subparsers.add_parser("logout", help="Log out and clear stored credentials")
    subparsers.add_parser("machines", help="List all machines connected to the account")

    on = subparsers.add_parser("on", help="Turn on the espresso machine")
    on.add_argument("-s", "--serial", help="Machine serial (optional with a single machine)")
    on.add_argument(
        "-w",
        "--wait",
        action="store_true",
        help="Wait until the machine is ready to brew",
    )

    off = subparsers.add_parser("off", help="Switch the espresso machine to standby")
    off.add_argument("-s", "--serial", help="Machine serial (optional with a single machine)")

    return parser


# ─── Helpers ─────────────────────────────────────────────────────

def format_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Render rows as a bordered plain-text table"""
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    border = "+" + "+".join("-" * (w + 2) for w in widths) + "+"

    def line(cells: Sequence[str]) -> str:
        return "| " + " | ".join(c.ljust(w) for c, w in zip(cells, widths)) + " |"

    out = [border, line(headers), border]
    out.extend(line(row) for row in rows)
    out.append(border)
    return "\n".join(out)


def next_poll_delay(delay: float, max_delay: float = MAX_POLL_DELAY) -> float:
    """Exponential backoff step, capped"""
    return min(delay * 2, max_delay)


def prompt_username(username: Optional[str]) -> str:
    if username:
        return username
    return input("Username: ").strip()


def prompt_password(password: Optional[str]) -> str:
    if password:
        return password
    return getpass.getpass("Password: ")


async def sign_in(
    auth_client: AuthenticationClient,
    username: str,
    password: str,
) -> Credentials:
    """
    Sign in with this installation's key, creating and registering one if needed.

    A new key is persisted only once the server has accepted it. An unreadable
    stored key is replaced.
    """
    try:
        key: Optional[InstallationKey] = load_installation_key()
    except KeyDecodingError as e:
        logger.warning("Discarding stored installation key: %s", e)
        key = None

    if key is None:
        key = generate_installation_key(generate_installation_id())
        logger.info("Registering new installation %s", key.installation_id)
        await auth_client.register_client(key)
        save_installation_key(key)

    logger.info("Authenticating with La Marzocco...")
    return await auth_client.login(username, password, key)


async def resolve_serial(machines: MachineService, serial: Optional[str]) -> str:
    """Use the given serial, or the account's only machine"""
    if serial:
        return serial

    found = await machines.list()
    if not found:
        raise CliError("No machines found connected to your La Marzocco account.")
    if len(found) > 1:
        raise CliError(
            "Multiple machines found connected to your La Marzocco account. "
            "Please specify a machine with --serial."
        )
    return found[0].serial_number


async def wait_for_machine_ready(
    machines: MachineService,
    serial: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    initial_delay: float = INITIAL_POLL_DELAY,
    max_delay: float = MAX_POLL_DELAY,
) -> None:
    """
    Poll machine status until it reports ready.

    Delay starts at initial_delay and doubles up to max_delay. A line is
    printed each time the reported status changes. Standby is expected while
    the machine starts up. Authentication errors stop polling.
    """
    print("Waiting for your machine to be ready...")
    delay = initial_delay
    last_message = ""

    await sleep(delay)
    while True:
        try:
            status = (await machines.get_status(serial)).get_status_string()
        except AuthenticationError:
            raise
        except LmError as e:
            message = f"Error checking status: {e}"
        else:
            if status == READY_STATUS:
                print("✅ Machine is ready! ☕")
                return
            if status.startswith("On (Ready in"):
                message = f"Machine heating up - {status}"
            elif status == "Standby":
                message = "Machine starting up..."
            else:
                message = f"Machine status: {status}"

        if message != last_message:
            print(message)
            last_message = message

        await sleep(delay)
        delay = next_poll_delay(delay, max_delay)


# ─── Commands ────────────────────────────────────────────────────

async def _cmd_login(args: argparse.Namespace) -> None:
    username = prompt_username(args.login_username or args.username)
    password = prompt_password(args.login_password or args.password)

    async with AuthenticationClient(debug=args.verbose) as auth_client:
        credentials = await sign_in(auth_client, username, password)

    save_config(Config.from_credentials(credentials))
    print(f"✅ Authentication successful! Credentials saved to {get_config_path()}.")


def _cmd_logout(args: argparse.Namespace) -> None:
    clear_config()
    print("✅ Logged out successfully. Credentials cleared.")


async def _load_credentials(args: argparse.Namespace) -> Tuple[Credentials, bool]:
    """Stored credentials, else a fresh sign-in from --username/--password"""
    try:
        config = load_config()
    except ConfigError:
        if not args.username or not args.password:
            raise CliError(NOT_LOGGED_IN_MESSAGE)
        async with AuthenticationClient(debug=args.verbose) as auth_client:
            return await sign_in(auth_client, args.username, args.password), False

    logger.debug("Using stored credentials for user: %s", config.username)
    return config.to_credentials(), True


def _save_refreshed_tokens(credentials: Credentials) -> None:
    try:
        save_config(Config.from_credentials(credentials))
    except ConfigError as e:
        logger.warning("Failed to save refreshed tokens to config file: %s", e)
    else:
        logger.debug("Refreshed tokens saved to config file")


async def _cmd_machines(client: LaMarzoccoClient, args: argparse.Namespace) -> None:
    machines = await client.machines.list()
    if not machines:
        print("⚠️ No machines connected to your La Marzocco account.")
        return

    rows: List[List[str]] = []
    for machine in machines:
        if not machine.connected:
            status = "Unavailable"
        else:
            try:
                status = (await client.machines.get_status(machine.serial_number)).get_status_string()
            except AuthenticationError:
                raise
            except LmError as e:
                logger.debug("Status for %s unavailable: %s", machine.serial_number, e)
                status = "Unknown"
        rows.append([machine.display_name, machine.serial_number, status])

    print(format_table(["Name", "Serial", "Status"], rows))


async def _cmd_on(client: LaMarzoccoClient, args: argparse.Namespace) -> None:
    serial = await resolve_serial(client.machines, args.serial)
    logger.info("Turning on machine %s", serial)
    await client.machines.turn_on(serial)

    if args.wait:
        await wait_for_machine_ready(client.machines, serial)
    else:
        print(f"✅ Machine {serial} turned on successfully.")


async def _cmd_off(client: LaMarzoccoClient, args: argparse.Namespace) -> None:
    serial = await resolve_serial(client.machines, args.serial)
    logger.info("Turning off machine %s", serial)
    await client.machines.turn_off(serial)
    print(f"✅ Machine {serial} switched to standby mode.")


MACHINE_COMMANDS = {
    "machines": _cmd_machines,
    "on": _cmd_on,
    "off": _cmd_off,
}


async def run(args: argparse.Namespace) -> None:
    if args.command == "login":
        await _cmd_login(args)
        return
    if args.command == "logout":
        _cmd_logout(args)
        return

    credentials, stored = await _load_credentials(args)
    client = LaMarzoccoClient(
        credentials,
        on_tokens_refreshed=_save_refreshed_tokens if stored else None,
        debug=args.verbose,
    )
    try:
        async with client:
            await MACHINE_COMMANDS[args.command](client, args)
    except AuthenticationError:
        if not stored:
            raise
        logger.warning("Stored credentials are invalid, clearing config file")
        clear_config()
        raise CliError("Stored credentials are invalid. Please run 'lm login' again.")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(run(args))
    except LmError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
