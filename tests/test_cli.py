from __future__ import annotations

from pathlib import Path

import pytest

from gofer.cli import Gofer, build_parser, run_cli
from gofer.config import Config
from gofer.core.context import ExecutionContext
from gofer.notify import ConsoleSink, TelegramSink


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("gofer.cli.setup_logging", lambda level: None)
    for name in ("ENABLE_COMMAND_EXECUTION", "DEMO_MODE", "ENABLE_WATCHER", "ENABLE_TELEGRAM"):
        monkeypatch.delenv(name, raising=False)


def _write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_parser_requires_subcommand() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_parser_normalizes_log_level() -> None:
    args = build_parser().parse_args(["--log-level", "debug", "check", "ls"])
    assert args.log_level == "DEBUG"
    assert args.cmd == "ls"


@pytest.mark.anyio
async def test_config_subcommand_prints_yaml(capsys) -> None:
    assert await run_cli(["config"]) == 0
    out = capsys.readouterr().out
    assert "watcher:" in out
    assert "screenshot_command:" in out


@pytest.mark.anyio
async def test_check_explains_refusal(tmp_path: Path, capsys) -> None:
    path = _write_config(tmp_path, "execution:\n  enabled: true\n")
    assert await run_cli(["--config", str(path), "check", "passwd"]) == 0
    out = capsys.readouterr().out
    assert "refuse" in out
    assert "forbidden" in out


@pytest.mark.anyio
async def test_run_in_demo_mode(tmp_path: Path, capsys) -> None:
    path = _write_config(tmp_path, "execution:\n  enabled: true\n  demo_mode: true\n")
    assert await run_cli(["--config", str(path), "run", "ls"]) == 0
    out = capsys.readouterr().out
    assert "demo_file1.txt" in out
    assert "[REPL] [DEMO] Simulating safe command: ls" in out


@pytest.mark.anyio
async def test_run_refused_when_disabled(tmp_path: Path, capsys) -> None:
    path = _write_config(tmp_path, "execution:\n  enabled: false\n")
    assert await run_cli(["--config", str(path), "run", "ls"]) == 1
    assert "disabled" in capsys.readouterr().out.lower()


@pytest.mark.anyio
async def test_watch_disabled(tmp_path: Path, capsys) -> None:
    path = _write_config(tmp_path, "watcher:\n  enabled: false\n")
    assert await run_cli(["--config", str(path), "watch", "installer done"]) == 1
    assert "Desktop watching is currently disabled." in capsys.readouterr().out


@pytest.mark.anyio
async def test_missing_config_file(tmp_path: Path, capsys) -> None:
    assert await run_cli(["--config", str(tmp_path / "absent.yaml"), "check", "ls"]) == 1
    assert "Config file not found" in capsys.readouterr().out


@pytest.mark.anyio
async def test_invalid_config_file(tmp_path: Path, capsys) -> None:
    path = _write_config(tmp_path, "classifier:\n  provider: gemini\n")
    assert await run_cli(["--config", str(path), "check", "ls"]) == 1
    assert "Error:" in capsys.readouterr().out


@pytest.mark.anyio
async def test_app_wiring() -> None:
    app = Gofer(Config())
    try:
        assert app.channel is ExecutionContext.REPL
        assert isinstance(app.sink, ConsoleSink)
        assert "watch_desktop" in app.tools
        first, second = app.new_context(), app.new_context()
        assert first.task_id != second.task_id
    finally:
        await app.aclose()


@pytest.mark.anyio
async def test_app_uses_telegram_channel() -> None:
    app = Gofer(Config(), use_telegram=True)
    try:
        assert app.channel is ExecutionContext.TELEGRAM
        assert isinstance(app.sink, TelegramSink)
    finally:
        await app.aclose()
    assert app.shutdown.is_shutting_down
