"""Tests for perch.cli — argument parsing, app resolution, and ``perch routes``."""

import sys
import types

import pytest

from perch.app import App
from perch.cli import main
from perch.cli._resolve import resolve_app


@pytest.fixture
def app_module(monkeypatch: pytest.MonkeyPatch) -> types.ModuleType:
    """Install an importable ``perch_cli_fixture`` module holding a few apps."""
    module = types.ModuleType("perch_cli_fixture")
    app = App()
    app.map_default_routes()
    module.app = app
    module.api = App()
    module.make_app = lambda: App()
    module.broken_factory = lambda: 1 / 0
    module.not_an_app = "hello"
    monkeypatch.setitem(sys.modules, module.__name__, module)
    return module


class TestCLIHelp:
    def test_help_exits_zero(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])
        assert exc_info.value.code == 0

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "usage: perch" in capsys.readouterr().out

    def test_run_missing_app(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["run"])
        assert exc_info.value.code == 2


class TestResolveApp:
    def test_default_attribute(self, app_module: types.ModuleType) -> None:
        assert resolve_app("perch_cli_fixture") is app_module.app

    def test_named_attribute(self, app_module: types.ModuleType) -> None:
        assert resolve_app("perch_cli_fixture:api") is app_module.api

    def test_factory(self, app_module: types.ModuleType) -> None:
        assert isinstance(resolve_app("perch_cli_fixture:make_app"), App)

    def test_factory_error(self, app_module: types.ModuleType) -> None:
        with pytest.raises(TypeError, match="raised an error"):
            resolve_app("perch_cli_fixture:broken_factory")

    def test_not_an_app(self, app_module: types.ModuleType) -> None:
        with pytest.raises(TypeError, match="not a perch.App"):
            resolve_app("perch_cli_fixture:not_an_app")

    def test_missing_attribute(self, app_module: types.ModuleType) -> None:
        with pytest.raises(AttributeError):
            resolve_app("perch_cli_fixture:nope")


class TestRoutesCommand:
    def test_prints_table(self, app_module: types.ModuleType, capsys: pytest.CaptureFixture[str]) -> None:
        main(["routes", "perch_cli_fixture"])
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split() == ["NAME", "METHODS", "PATH", "CONSTRAINTS"]
        assert lines[2].startswith("resource")
        assert "DELETE, GET, PUT" in lines[2]
        assert "/:controller/:id" in lines[2]
        assert r"id=[1-9]\d*" in lines[2]
        assert lines[3].startswith("collection")

    def test_bad_import(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["routes", "perch_no_such_module_anywhere"])
        assert exc_info.value.code == 1
        assert "Error:" in capsys.readouterr().err


class TestRunCommand:
    def test_flags_override_config(
        self, app_module: types.ModuleType, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        calls: list[tuple[str | None, int | None, str | None]] = []
        monkeypatch.setattr(
            App,
            "run",
            lambda self, host=None, port=None, log_level=None: calls.append((host, port, log_level)),
        )
        main(["run", "perch_cli_fixture", "--host", "0.0.0.0", "--port", "9000", "--log-level", "debug"])
        assert calls == [("0.0.0.0", 9000, "debug")]

    def test_log_level_defaults_to_config(
        self, app_module: types.ModuleType, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        calls: list[str | None] = []
        monkeypatch.setattr(App, "run", lambda self, host=None, port=None, log_level=None: calls.append(log_level))
        main(["run", "perch_cli_fixture"])
        assert calls == [None]
