"""
CLI tests.
"""

import errno
import json
import logging
import socket

import pytest
from click.testing import CliRunner

from tacmap import cli
from tacmap.config import reset_config


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    monkeypatch.delenv("TACMAP_PORT", raising=False)
    monkeypatch.delenv("TACMAP_PUBLIC_DIR", raising=False)
    reset_config()
    yield
    reset_config()


class TestCli:

    def test_help_alias(self):
        runner = CliRunner()
        result = runner.invoke(cli.main, ["serve", "-h"])

        assert result.exit_code == 0
        assert "--upstream-proxy" in result.output
        assert "--bypass-upstream-proxy-hosts" in result.output

    def test_config_json(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "config", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["server"]["port"] == 9090

    def test_serve_applies_options(self, tmp_path, monkeypatch):
        """Options land in the config handed to the server."""
        captured = {}

        def fake_run_server(config, log_level="info"):
            captured["config"] = config

        monkeypatch.setattr("tacmap.api.server.run_server", fake_run_server)
        monkeypatch.setattr(cli, "check_bindable", lambda host, port: None)

        runner = CliRunner()
        result = runner.invoke(cli.main, [
            "--data-dir", str(tmp_path),
            "serve",
            "--port", "8123",
            "--public",
            "--upstream-proxy", "http://proxy:8000",
            "--bypass-upstream-proxy-hosts", "LanHost1,lanhost2",
            "--scoped",
        ])

        assert result.exit_code == 0, result.output
        config = captured["config"]
        assert config.server.port == 8123
        assert config.server.bind_host == "0.0.0.0"
        assert config.proxy.upstream_proxy == "http://proxy:8000"
        assert config.proxy.bypass_hosts == ["lanhost1", "lanhost2"]
        assert config.hub.scoped_delivery is True
        assert not (tmp_path / "config.json").exists()

    def test_serve_port_in_use(self, tmp_path):
        """A port that can't be bound exits with status 1."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen(1)
            port = busy.getsockname()[1]

            runner = CliRunner()
            result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "serve", "--port", str(port)])

        assert result.exit_code == 1
        assert "already in use" in result.output

    def test_serve_publicssl_requires_certs(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        runner = CliRunner()
        result = runner.invoke(cli.main, ["--data-dir", str(tmp_path), "serve", "--publicssl"])

        assert result.exit_code == 1
        assert "TLS files not found" in result.output


class TestBindErrors:

    def test_permission_message(self, capsys):
        cli.explain_bind_error(OSError(errno.EACCES, "Permission denied"), 80)
        out = capsys.readouterr().out
        assert "permission" in out
        assert "higher than 1024" in out


class TestLogLevel:
    """LOG_LEVEL is honoured unless -v forces debug."""

    def test_default_info(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert cli.log_level() == logging.INFO

    def test_env_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert cli.log_level() == logging.WARNING

    def test_verbose_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert cli.log_level(verbose=True) == logging.DEBUG

    def test_unknown_level_falls_back(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        assert cli.log_level() == logging.INFO

    def test_serve_passes_level_to_server(self, tmp_path, monkeypatch):
        captured = {}

        def fake_run_server(config, log_level="info"):
            captured["log_level"] = log_level

        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.setattr("tacmap.api.server.run_server", fake_run_server)
        monkeypatch.setattr(cli, "check_bindable", lambda host, port: None)

        result = CliRunner().invoke(cli.main, ["--data-dir", str(tmp_path), "serve"])

        assert result.exit_code == 0, result.output
        assert captured["log_level"] == "warning"
