"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
import subprocess
import sys
from typing import NoReturn

import typer

from lh2ctl.core.errors import (
    InvalidAddressError,
    RegistryCorruptError,
    RegistryEmptyError,
    RegistryError,
    RegistryInvalidError,
    RegistryMissingError,
    RegistryWriteError,
)
from lh2ctl.core.logs import configure_logging
from lh2ctl.core.model import LighthouseAddress, PowerState, parse_addresses
from lh2ctl.core.registry import load_registry, register
from lh2ctl.core.service import PowerStateOrchestrator

app = typer.Typer(help="Lighthouse (SteamVR base station 2.0) power control over Bluetooth LE")
LOGGER = logging.getLogger(__name__)

_POWER_REGISTRY_EXIT_CODES: dict[type[RegistryError], int] = {
    RegistryMissingError: 81,
    RegistryCorruptError: 82,
    RegistryInvalidError: 83,
    RegistryEmptyError: 84,
}
_EXEC_REGISTRY_EXIT_CODES: dict[type[RegistryError], int] = {
    RegistryMissingError: 2,
    RegistryCorruptError: 3,
    RegistryInvalidError: 3,
    RegistryEmptyError: 4,
}


def _exit(code: int) -> NoReturn:
    LOGGER.debug("Exiting with code %d...", code)
    raise typer.Exit(code=code)


def _joined(addresses: list[LighthouseAddress]) -> str:
    return ", ".join(str(address) for address in addresses)


def _set_power_state(state: PowerState, addresses: list[LighthouseAddress]) -> bool:
    orchestrator = PowerStateOrchestrator()
    return asyncio.run(orchestrator.set_power_state(state, addresses))


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Sets the output log level to verbose"),
) -> None:
    log_file = configure_logging(verbose)
    LOGGER.debug("Received %s", sys.argv[1:])
    LOGGER.debug("Running '%s', logging to %s", ctx.invoked_subcommand, log_file)


@app.command("power")
def power(
    state: PowerState = typer.Argument(..., help='one of "on", "off"'),
    addresses: list[str] | None = typer.Argument(
        None,
        help="MAC addresses of the lighthouse(s) to change; defaults to the registered ones",
    ),
) -> None:
    """Manually control the power state of the lighthouse(s)."""
    try:
        targets = parse_addresses(addresses or [])
    except InvalidAddressError as exc:
        LOGGER.error("%s", exc)
        _exit(80)

    if not targets:
        try:
            targets = load_registry()
        except RegistryError as exc:
            LOGGER.error("%s", exc)
            LOGGER.error(
                "No addresses were specified and there are no usable registered lighthouses! "
                "Either provide at least one address (`lh2ctl power %s <addresses>`) "
                "or run `lh2ctl register <addresses>` first",
                state.value,
            )
            _exit(_POWER_REGISTRY_EXIT_CODES.get(type(exc), 80))

    LOGGER.info("Setting the power state of %s to %s", _joined(targets), state.value)
    try:
        succeeded = _set_power_state(state, targets)
    except Exception:
        LOGGER.exception("Failed to set power state for the following lighthouses: %s", _joined(targets))
        succeeded = None

    if succeeded is None:
        _exit(90)
    if not succeeded:
        LOGGER.error("Failed to set power state for the following lighthouses: %s", _joined(targets))
        _exit(91)
    LOGGER.info("Lighthouses are now %s: %s", state.value, _joined(targets))


@app.command("register")
def register_lighthouses(
    addresses: list[str] = typer.Argument(
        ...,
        help="MAC addresses of the lighthouse(s) that should be switched automatically",
    ),
) -> None:
    """Register the lighthouse(s) used by `exec` and by `power` without addresses."""
    try:
        targets = parse_addresses(addresses)
    except InvalidAddressError as exc:
        LOGGER.error("%s", exc)
        _exit(80)

    try:
        stored = register(targets)
    except RegistryWriteError as exc:
        LOGGER.error("%s", exc)
        _exit(10 if exc.stage == "directory" else 11)

    LOGGER.info("Registered lighthouses: %s", _joined(stored))


@app.command(
    "exec",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def exec_program(
    args: list[str] = typer.Argument(..., help="the program to run, followed by its arguments"),
) -> None:
    """Turn the registered lighthouses on, run a program, then turn them off."""
    try:
        targets = load_registry()
    except RegistryError as exc:
        LOGGER.error("%s", exc)
        LOGGER.error("There are no registered lighthouses! Run `lh2ctl register <addresses>` to add them")
        _exit(_EXEC_REGISTRY_EXIT_CODES.get(type(exc), 3))

    if not _power_for_exec(PowerState.ON, targets):
        LOGGER.error("Failed to turn on the lighthouses: %s", _joined(targets))
        _exit(5)
    LOGGER.info("Successfully turned on the lighthouses: %s", _joined(targets))

    launched = True
    LOGGER.info("Executing '%s'", " ".join(args))
    try:
        completed = subprocess.run(args, check=False)
        LOGGER.info("'%s' exited with code %d", args[0], completed.returncode)
    except OSError as exc:
        LOGGER.error("Could not start '%s': %s", args[0], exc)
        launched = False

    if not _power_for_exec(PowerState.OFF, targets):
        LOGGER.error("Failed to turn off the lighthouses: %s", _joined(targets))
        _exit(6)
    LOGGER.info("Successfully turned off the lighthouses: %s", _joined(targets))

    if not launched:
        _exit(7)


def _power_for_exec(state: PowerState, targets: list[LighthouseAddress]) -> bool:
    try:
        return _set_power_state(state, targets)
    except Exception:
        LOGGER.exception("Unexpected error while turning the lighthouses %s", state.value)
        return False


def run() -> None:
    app()


if __name__ == "__main__":
    run()
