"""Tests for perch.cli — entrypoint, argument parsing, inspection commands."""

import argparse
import json
import logging

import pytest

from conftest import write_config
from perch.cli import main
from perch.cli._common import LOG_LEVELS, config_overrides, configure_logging
from perch.config import SCHEMA, PodletConfig


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """The CLI reads os.environ; keep the host's variables out of it."""
    for setting in SCHEMA.values():
        if setting.env:
            monkeypatch.delenv(setting.env, raising=False)
    monkeypatch.setattr("perch.cli._run.configure_logging", lambda config: None)


class TestCLIHelp:
    @pytest.mark.parametrize(
        "argv", [["--help"], ["run", "--help"], ["manifest", "--help"], ["config", "--help"]]
    )
    def test_help_exits_zero(self, argv) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(argv)
        assert exc_info.value.code == 0

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "usage: perch" in capsys.readouterr().out

    def test_unknown_command(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["deploy"])
        assert exc_info.value.code == 2


class TestOverrides:
    def test_only_given_values(self) -> None:
        args = argparse.Namespace(env="prod", domain=None, host=None, port="3000", log_level="DEBUG")
        assert config_overrides(args) == {"env": "prod", "port": "3000", "log-level": "DEBUG"}


class TestManifestCommand:
    def test_prints_manifest(self, project, monkeypatch, capsys) -> None:
        monkeypatch.setenv("APP_NAME", "cart")
        monkeypatch.setenv("VERSION", "3.1.4")
        main(["manifest", "--root", str(project), "--env", "prod"])
        manifest = json.loads(capsys.readouterr().out)
        assert manifest["name"] == "cart"
        assert manifest["version"] == "3.1.4"

    def test_invalid_config_exits_one(self, tmp_path, monkeypatch, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["manifest", "--root", str(tmp_path)])
        assert exc_info.value.code == 1
        assert "app.name" in capsys.readouterr().err


class TestConfigCommand:
    def test_prints_all_values(self, project, monkeypatch, capsys) -> None:
        monkeypatch.setenv("APP_NAME", "cart")
        write_config(project, {"app": {"mode": "ssr-only"}})
        main(["config", "--root", str(project), "--port", "3000"])
        values = json.loads(capsys.readouterr().out)
        assert values["app.mode"] == "ssr-only"
        assert values["app.port"] == 3000

    def test_prints_single_key(self, project, monkeypatch, capsys) -> None:
        monkeypatch.setenv("APP_NAME", "cart")
        main(["config", "--root", str(project), "app.name"])
        assert json.loads(capsys.readouterr().out) == "cart"

    def test_unknown_key(self, project, monkeypatch) -> None:
        monkeypatch.setenv("APP_NAME", "cart")
        with pytest.raises(SystemExit) as exc_info:
            main(["config", "--root", str(project), "app.nope"])
        assert exc_info.value.code == 1


class TestRunCommand:
    def test_serves_podlet_server(self, project, monkeypatch) -> None:
        monkeypatch.setenv("APP_NAME", "cart")
        served = {}

        def fake_run_server(app, host, port, *, reload=False, workers=1):
            served.update(app=app, host=host, port=port, reload=reload, workers=workers)

        monkeypatch.setattr("perch.server.dev.run_server", fake_run_server)
        main(["run", "--root", str(project), "--env", "prod", "--port", "9090", "--workers", "2"])

        assert type(served["app"]).__name__ == "PodletServer"
        assert served["port"] == 9090
        assert served["host"] == "127.0.0.1"
        assert served["reload"] is False
        assert served["workers"] == 2

    def test_reload_in_development(self, project, monkeypatch) -> None:
        monkeypatch.setenv("APP_NAME", "cart")
        served = {}
        monkeypatch.setattr(
            "perch.server.dev.run_server",
            lambda app, host, port, **kwargs: served.update(kwargs),
        )
        main(["run", "--root", str(project)])
        assert served["reload"] is True


class TestLogging:
    def test_level_mapping(self) -> None:
        assert LOG_LEVELS["TRACE"] == logging.DEBUG
        assert LOG_LEVELS["WARN"] == logging.WARNING
        assert LOG_LEVELS["FATAL"] == logging.CRITICAL

    def test_configure_logging(self, monkeypatch) -> None:
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))
        configure_logging(PodletConfig({"app.logLevel": "WARN"}))
        assert calls["level"] == logging.WARNING
