from __future__ import annotations

from pathlib import Path

import pytest
import typer

from rr.cli.app import _main  # pyright: ignore[reportPrivateUsage]
from rr.cli.context import CONFIG_ENV, build_context, config_path
from rr.core.config import DEFAULT_CONFIG_FILE
from rr.core.errors import ErrorCode
from rr.store.state import StateError, StateReadError


def _write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "rr.toml"
    path.write_text(body, encoding="utf-8")
    return path


def test_config_path_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    assert config_path() == Path(DEFAULT_CONFIG_FILE)


def test_build_context_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    state = tmp_path / "state" / "rr.json"
    config = _write_config(
        tmp_path,
        f"""
[polling]
max_workers = 2

[state]
path = "{state.as_posix()}"
""",
    )
    monkeypatch.setenv(CONFIG_ENV, str(config))

    ctx = build_context()

    assert ctx.config.polling.max_workers == 2
    assert ctx.store.path == state
    assert ctx.store.get_distribution("r1") is None


def test_build_context_bad_config_exits(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(CONFIG_ENV, str(_write_config(tmp_path, "[polling\n")))

    with pytest.raises(typer.Exit) as exc:
        build_context()

    assert exc.value.exit_code == int(ErrorCode.CONFIG_ERROR)


def test_build_context_corrupt_state_exits(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    state = tmp_path / "state.json"
    state.write_text("not json", encoding="utf-8")
    config = _write_config(tmp_path, f'[state]\npath = "{state.as_posix()}"\n')
    monkeypatch.setenv(CONFIG_ENV, str(config))

    with pytest.raises(typer.Exit) as exc:
        build_context()

    assert exc.value.exit_code == int(ErrorCode.IO_ERROR)


def test_main_callback_missing_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV, raising=False)

    with pytest.raises(typer.Exit) as exc:
        _main(version=False, config=tmp_path / "absent.toml")

    assert exc.value.exit_code == int(ErrorCode.CONFIG_ERROR)


def test_main_callback_sets_config_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(CONFIG_ENV, "placeholder.toml")
    config = _write_config(tmp_path, "")

    _main(version=False, config=config)

    assert config_path() == config


def test_main_callback_version(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(typer.Exit) as exc:
        _main(version=True, config=None)

    assert exc.value.exit_code == 0
    assert capsys.readouterr().out.strip() == "0.1.0"


def test_main_reports_state_file_broken_mid_command(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    import rr.cli.app as app_module

    def broken() -> None:
        raise StateReadError(StateError("Invalid JSON: boom", path=tmp_path / "state.json"))

    monkeypatch.setattr(app_module, "app", broken)

    with pytest.raises(SystemExit) as exc:
        app_module.main()

    assert exc.value.code == int(ErrorCode.IO_ERROR)
