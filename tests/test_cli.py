"""
Tests for the click CLI, run against an injected mock host.
"""

import json

import pytest
from click.testing import CliRunner

from hostctl.adapters.mock import MockExecutor
from hostctl.main import cli


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def host() -> MockExecutor:
    return MockExecutor()


def _invoke(runner, host, *args):
    return runner.invoke(
        cli, ["--quiet", *args], obj={"executor": host}, env={"HOSTCTL_SETTLE_DELAY": "0"},
    )


class TestCliBasics:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("detect", "apps", "section", "service", "pkg-command", "install"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestPkgCommand:
    def test_install_on_fedora(self, runner):
        result = runner.invoke(cli, ["pkg-command", "fedora", "install", "nginx", "php"])
        assert result.exit_code == 0
        assert result.output.strip() == "sudo dnf makecache -q || true && sudo dnf install -y -q nginx php"

    def test_install_without_update(self, runner):
        result = runner.invoke(cli, ["pkg-command", "ubuntu", "install", "--no-update", "nginx"])
        assert result.output.strip() == "sudo apt-get install -y nginx"

    def test_purge(self, runner):
        result = runner.invoke(cli, ["pkg-command", "debian", "remove", "--purge", "redis-server"])
        assert result.output.strip() == "sudo apt-get purge -y redis-server"

    def test_update_needs_no_packages(self, runner):
        result = runner.invoke(cli, ["pkg-command", "arch", "update"])
        assert result.output.strip() == "sudo pacman -Sy --noconfirm"

    def test_install_without_packages(self, runner):
        result = runner.invoke(cli, ["pkg-command", "ubuntu", "install"])
        assert result.exit_code == 1
        assert "No packages given" in result.output


class TestApps:
    def test_json(self, runner):
        result = runner.invoke(cli, ["apps", "--json"])
        assert result.exit_code == 0
        payload = {app["id"]: app for app in json.loads(result.output)}
        assert payload["nginx"]["default_section"] == "service"
        assert payload["nginx"]["category"] == "web_server"
        assert "databases" in payload["mysql"]["sections"]

    def test_text(self, runner):
        result = runner.invoke(cli, ["apps"])
        assert result.exit_code == 0
        assert "Nginx" in result.output
        assert "← default" in result.output

    def test_bad_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["--apps", str(tmp_path / "missing.yml"), "apps"])
        assert result.exit_code == 2


class TestSection:
    def test_configuration_json(self, runner, host):
        host.set_response("cat '/etc/nginx/nginx.conf'", "worker_processes 4;\n")
        result = _invoke(runner, host, "section", "nginx", "configuration", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert list(data) == ["config_values"]
        assert {"key": "worker_processes", "value": "4"}.items() <= data["config_values"][0].items()

    def test_text_output(self, runner, host):
        host.set_response("sudo tail", "first\nsecond\n")
        result = _invoke(runner, host, "section", "nginx", "logs")
        assert result.exit_code == 0, result.output
        assert "log_content" in result.output
        assert "second" in result.output

    def test_unknown_application(self, runner, host):
        result = _invoke(runner, host, "section", "tomcat", "service")
        assert result.exit_code == 1
        assert "Unknown application: tomcat" in result.output

    def test_unknown_section(self, runner, host):
        result = _invoke(runner, host, "section", "nginx", "phpinfo")
        assert result.exit_code == 1
        assert "no section 'phpinfo'" in result.output

    def test_requires_running(self, runner, host):
        result = _invoke(runner, host, "section", "nginx", "status")
        assert result.exit_code == 1
        assert "Nginx is not running" in result.output


class TestServiceCommand:
    def test_start(self, runner, host):
        result = _invoke(runner, host, "service", "nginx", "start")
        assert result.exit_code == 0, result.output
        assert "start succeeded" in result.output
        assert "sudo systemctl start nginx" in host.commands

    def test_failure(self, runner, host):
        host.set_failure("systemctl restart", "Job failed")
        result = _invoke(runner, host, "service", "redis", "restart")
        assert result.exit_code == 1
        assert "restart failed" in result.output

    def test_bad_action(self, runner, host):
        result = _invoke(runner, host, "service", "nginx", "explode")
        assert result.exit_code == 2


class TestInstallCommand:
    def test_install_reports_failure(self, runner, host):
        host.set_failure("apt-get install", "E: Unable to locate package", exit_code=100)
        result = _invoke(runner, host, "install", "nginx", "--os", "ubuntu")
        assert result.exit_code == 1
        assert "Unable to locate package" in result.output

    def test_install_success(self, runner, host):
        host.set_response("which nginx", "/usr/sbin/nginx\n")
        host.set_response("nginx -v", "nginx version: nginx/1.24.0\n")
        result = _invoke(runner, host, "install", "nginx", "--os", "ubuntu")
        assert result.exit_code == 0, result.output
        assert "Nginx installed 1.24.0" in result.output


class TestDetectCommand:
    def test_json(self, runner, host):
        host.set_response("which redis-server", "/usr/bin/redis-server\n")
        host.set_response("redis-server --version", "Redis server v=7.2.4 sha=00000000:0\n")
        host.set_response("is-active redis", "active")
        result = _invoke(runner, host, "detect", "--json")
        assert result.exit_code == 0, result.output
        rows = {row["software"]: row for row in json.loads(result.output)}
        assert rows["redis"]["installed"]
        assert rows["redis"]["status"] == "running"
        assert not rows["mongodb"]["installed"]
