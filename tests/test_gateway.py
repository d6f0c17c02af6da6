from __future__ import annotations

import pytest

from gofer.config import ExecutionConfig
from gofer.core.gateway import CommandGateway, ExecutionResult, spawn_shell
from gofer.core.policy import DEMO_LS_OUTPUT, OperatingMode
from gofer.exceptions import ExecutionError
from tests.helpers.fakes import FakeSpawner, RecordingSink, make_context


def _gateway(spawner: FakeSpawner, **config: object) -> CommandGateway:
    return CommandGateway(ExecutionConfig(**config), spawner=spawner)


@pytest.mark.anyio
async def test_forbidden_command_in_normal_mode_never_spawns() -> None:
    spawner = FakeSpawner()
    sink = RecordingSink()
    context = make_context(sink)
    gateway = _gateway(spawner, enabled=True)

    result = await gateway.run("rm -rf / --no-preserve-root", context)
    await context.flush()

    assert result.success is False
    assert result.stdout == ""
    assert "forbidden" in result.stderr
    assert spawner.calls == []
    assert sink.messages == [
        "Gofer attempted to run a blocked command: rm -rf / --no-preserve-root. Execution was blocked."
    ]


@pytest.mark.anyio
async def test_demo_ls_is_simulated_without_spawning() -> None:
    spawner = FakeSpawner()
    sink = RecordingSink()
    context = make_context(sink)
    gateway = _gateway(spawner, enabled=True, demo_mode=True)

    result = await gateway.run("ls", context)
    await context.flush()

    assert gateway.mode is OperatingMode.DEMO
    assert result == ExecutionResult(True, DEMO_LS_OUTPUT, "")
    assert spawner.calls == []
    assert sink.messages == ["[DEMO] Simulating safe command: ls"]


@pytest.mark.anyio
@pytest.mark.parametrize("command", ["pwd", "whoami", "date"])
async def test_demo_read_only_commands_never_spawn(command: str) -> None:
    spawner = FakeSpawner()
    gateway = _gateway(spawner, enabled=True, demo_mode=True)

    result = await gateway.run(command, make_context())

    assert result.success is True
    assert result.stderr == ""
    assert spawner.calls == []


@pytest.mark.anyio
async def test_disabled_mode_refuses() -> None:
    spawner = FakeSpawner()
    result = await _gateway(spawner).run("ls", make_context())
    assert result.success is False
    assert "disabled" in result.stderr.lower()
    assert spawner.calls == []


@pytest.mark.anyio
async def test_execute_trims_output() -> None:
    spawner = FakeSpawner(stdout=b"  hello\n", stderr=b"warning: old\n")
    result = await _gateway(spawner, enabled=True, command_timeout=7).run("echo hello", make_context())

    assert result == ExecutionResult(True, "hello", "warning: old")
    assert spawner.calls == [("echo hello", 7)]


@pytest.mark.anyio
async def test_nonzero_exit_always_has_stderr() -> None:
    spawner = FakeSpawner(returncode=3)
    result = await _gateway(spawner, enabled=True).run("false", make_context())

    assert result.success is False
    assert result.stderr == "Command exited with code 3"


@pytest.mark.anyio
async def test_spawn_errors_become_failed_results() -> None:
    async def broken(command: str, timeout: float | None):
        raise OSError("no shell")

    gateway = CommandGateway(ExecutionConfig(enabled=True), spawner=broken)
    result = await gateway.run("ls", make_context())

    assert result == ExecutionResult(False, "", "no shell")


@pytest.mark.anyio
async def test_notification_failure_does_not_fail_refusal() -> None:
    context = make_context(RecordingSink(fail=True))
    result = await _gateway(FakeSpawner(), enabled=True).run("passwd", context)
    await context.flush()
    assert result.success is False


@pytest.mark.anyio
async def test_spawn_shell_runs_real_command() -> None:
    returncode, stdout, stderr = await spawn_shell("echo hello")
    assert returncode == 0
    assert stdout.strip() == b"hello"
    assert stderr == b""


@pytest.mark.anyio
async def test_spawn_shell_timeout_kills_process() -> None:
    with pytest.raises(ExecutionError, match="timed out"):
        await spawn_shell("sleep 5", timeout=0.1)
