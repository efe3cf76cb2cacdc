from __future__ import annotations

import json
import subprocess

import pytest
from typer.testing import CliRunner

from lh2ctl import cli
from lh2ctl.core.model import PowerState
from lh2ctl.core.registry import registry_path

runner = CliRunner()


def _fake_orchestrator(monkeypatch: pytest.MonkeyPatch, results: list[bool | Exception]):
    calls: list[tuple[PowerState, list[str]]] = []

    class FakeOrchestrator:
        async def set_power_state(self, state, addresses):
            calls.append((state, [str(a) for a in addresses]))
            result = results[len(calls) - 1]
            if isinstance(result, Exception):
                raise result
            return result

    monkeypatch.setattr(cli, "PowerStateOrchestrator", FakeOrchestrator)
    return calls


def _write_registry(addresses: list[str]) -> None:
    path = registry_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"Lighthouses": addresses}), encoding="utf-8")


def test_power_with_addresses(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _fake_orchestrator(monkeypatch, [True])

    result = runner.invoke(cli.app, ["power", "on", "aa:bb:cc:dd:ee:01", "AA:BB:CC:DD:EE:02"])

    assert result.exit_code == 0
    assert calls == [(PowerState.ON, ["AA:BB:CC:DD:EE:01", "AA:BB:CC:DD:EE:02"])]


def test_power_uses_registry(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _fake_orchestrator(monkeypatch, [True])
    _write_registry(["AA:BB:CC:DD:EE:03"])

    result = runner.invoke(cli.app, ["power", "off"])

    assert result.exit_code == 0
    assert calls == [(PowerState.OFF, ["AA:BB:CC:DD:EE:03"])]


def test_power_rejects_unknown_state(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _fake_orchestrator(monkeypatch, [True])

    result = runner.invoke(cli.app, ["power", "standby", "AA:BB:CC:DD:EE:01"])

    assert result.exit_code != 0
    assert calls == []


def test_power_invalid_address(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _fake_orchestrator(monkeypatch, [True])

    result = runner.invoke(cli.app, ["power", "on", "nope"])

    assert result.exit_code == 80
    assert "'nope' is not a Bluetooth address" in result.output
    assert calls == []


@pytest.mark.parametrize(
    ("content", "code"),
    [
        (None, 81),
        ("{broken", 82),
        ('{"Lighthouses": 3}', 83),
        ('{"Lighthouses": []}', 84),
    ],
)
def test_power_registry_exit_codes(monkeypatch: pytest.MonkeyPatch, content: str | None, code: int) -> None:
    _fake_orchestrator(monkeypatch, [True])
    if content is not None:
        path = registry_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    result = runner.invoke(cli.app, ["power", "on"])

    assert result.exit_code == code


def test_power_failure_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_orchestrator(monkeypatch, [False])

    result = runner.invoke(cli.app, ["power", "on", "AA:BB:CC:DD:EE:01"])

    assert result.exit_code == 91
    assert "Failed to set power state for the following lighthouses: AA:BB:CC:DD:EE:01" in result.output


def test_power_unexpected_error_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_orchestrator(monkeypatch, [RuntimeError("dbus exploded")])

    result = runner.invoke(cli.app, ["power", "on", "AA:BB:CC:DD:EE:01"])

    assert result.exit_code == 90


def test_register_command() -> None:
    result = runner.invoke(cli.app, ["register", "aa:bb:cc:dd:ee:01", "AA:BB:CC:DD:EE:02"])

    assert result.exit_code == 0
    stored = json.loads(registry_path().read_text(encoding="utf-8"))
    assert stored == {"Lighthouses": ["AA:BB:CC:DD:EE:01", "AA:BB:CC:DD:EE:02"]}


def test_register_invalid_address() -> None:
    result = runner.invoke(cli.app, ["register", "AA:BB"])

    assert result.exit_code == 80
    assert not registry_path().exists()


def test_verbose_writes_log_file(monkeypatch: pytest.MonkeyPatch, isolated_dirs) -> None:
    _fake_orchestrator(monkeypatch, [True])

    result = runner.invoke(cli.app, ["--verbose", "power", "on", "AA:BB:CC:DD:EE:01"])

    assert result.exit_code == 0
    log_files = list((isolated_dirs / "data" / "lh2ctl" / "logs").glob("lh2ctl.*.log"))
    assert len(log_files) == 1
    assert "Setting the power state of AA:BB:CC:DD:EE:01 to on" in log_files[0].read_text(encoding="utf-8")


def test_exec_powers_on_runs_and_powers_off(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _fake_orchestrator(monkeypatch, [True, True])
    _write_registry(["AA:BB:CC:DD:EE:01"])
    commands: list[list[str]] = []

    def fake_run(cmd, check):
        commands.append(list(cmd))
        assert calls == [(PowerState.ON, ["AA:BB:CC:DD:EE:01"])]
        return subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr(subprocess, "run", fake_run)

    result = runner.invoke(cli.app, ["exec", "--", "steam", "-silent"])

    assert result.exit_code == 0
    assert commands == [["steam", "-silent"]]
    assert [c[0] for c in calls] == [PowerState.ON, PowerState.OFF]


def test_exec_without_registry(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _fake_orchestrator(monkeypatch, [True, True])

    result = runner.invoke(cli.app, ["exec", "steam"])

    assert result.exit_code == 2
    assert calls == []


def test_exec_power_on_failure_skips_program(monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_orchestrator(monkeypatch, [False])
    _write_registry(["AA:BB:CC:DD:EE:01"])

    def fake_run(cmd, check):
        raise AssertionError("program must not start")

    monkeypatch.setattr(subprocess, "run", fake_run)

    result = runner.invoke(cli.app, ["exec", "steam"])

    assert result.exit_code == 5


def test_exec_power_off_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_orchestrator(monkeypatch, [True, False])
    _write_registry(["AA:BB:CC:DD:EE:01"])
    monkeypatch.setattr(subprocess, "run", lambda cmd, check: subprocess.CompletedProcess(cmd, 0))

    result = runner.invoke(cli.app, ["exec", "steam"])

    assert result.exit_code == 6


def test_exec_missing_program_still_powers_off(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _fake_orchestrator(monkeypatch, [True, True])
    _write_registry(["AA:BB:CC:DD:EE:01"])

    def fake_run(cmd, check):
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    monkeypatch.setattr(subprocess, "run", fake_run)

    result = runner.invoke(cli.app, ["exec", "no-such-program"])

    assert result.exit_code == 7
    assert [c[0] for c in calls] == [PowerState.ON, PowerState.OFF]


def test_received_arguments_are_logged(monkeypatch: pytest.MonkeyPatch, isolated_dirs) -> None:
    _fake_orchestrator(monkeypatch, [True])
    argv = ["--verbose", "power", "off", "AA:BB:CC:DD:EE:01"]
    monkeypatch.setattr(cli.sys, "argv", ["lh2ctl", *argv])

    result = runner.invoke(cli.app, argv)

    assert result.exit_code == 0
    [log_file] = (isolated_dirs / "data" / "lh2ctl" / "logs").glob("lh2ctl.*.log")
    assert f"Received {argv}" in log_file.read_text(encoding="utf-8")
