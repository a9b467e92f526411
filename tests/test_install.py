"""
Tests for the install and remove use cases.
"""

import asyncio

from hostctl.core.commands.package_manager import PackageManagerKind
from hostctl.core.models.application import ApplicationDefinition
from hostctl.core.models.state import ApplicationState, LifecycleKind
from hostctl.core.use_cases.install import (
    install_application,
    remove_application,
    resolve_package_manager,
)


def _installed_nginx(mock):
    mock.set_response("which nginx", "/usr/sbin/nginx\n")
    mock.set_response("nginx -v", "nginx version: nginx/1.24.0\n")
    mock.set_response("is-active", "active")


class TestResolvePackageManager:
    def test_reads_os_release(self, ctx, mock):
        mock.set_response("os-release", 'NAME="Fedora Linux"\nID=fedora\n')
        assert asyncio.run(resolve_package_manager(ctx)) == PackageManagerKind.DNF
        assert mock.commands == ["cat /etc/os-release 2>/dev/null"]

    def test_quoted_id(self, ctx, mock):
        mock.set_response("os-release", 'ID="rocky"\n')
        assert asyncio.run(resolve_package_manager(ctx)) == PackageManagerKind.DNF

    def test_given_os_id_skips_host(self, ctx, mock):
        assert asyncio.run(resolve_package_manager(ctx, "arch")) == PackageManagerKind.PACMAN
        assert mock.commands == []

    def test_unknown_defaults_to_apt(self, ctx):
        assert asyncio.run(resolve_package_manager(ctx, "plan9")) == PackageManagerKind.APT


class TestInstallApplication:
    def test_success_tracks_lifecycle(self, ctx, mock, apps):
        _installed_nginx(mock)
        state = ApplicationState()
        result = asyncio.run(install_application(ctx, apps.get("nginx"), os_id="ubuntu", state=state))

        assert result.ok, result.message
        assert result.data["package_manager"] == "apt"
        assert result.data["status"] == "running"
        assert result.data["version"] == "1.24.0"
        assert "sudo apt-get update || true && sudo apt-get install -y nginx" in mock.commands
        assert state.lifecycle.kind == LifecycleKind.RUNNING
        assert state.install_status == ""

    def test_package_override_for_manager(self, ctx, mock, apps):
        asyncio.run(install_application(ctx, apps.get("apache"), os_id="fedora"))
        assert any("sudo dnf install -y -q httpd" in c for c in mock.commands)

    def test_failure_marks_broken(self, ctx, mock, apps):
        mock.set_failure("apt-get install", "E: Unable to locate package nginx", exit_code=100)
        state = ApplicationState()
        result = asyncio.run(install_application(ctx, apps.get("nginx"), os_id="debian", state=state))

        assert not result.ok
        assert "status 100" in result.message
        assert "Unable to locate package" in result.data["output"]
        assert state.lifecycle.kind == LifecycleKind.BROKEN
        assert state.lifecycle.reason == result.message
        assert state.install_status == result.message

    def test_installed_but_not_detected(self, ctx, apps):
        state = ApplicationState()
        result = asyncio.run(install_application(ctx, apps.get("nginx"), os_id="ubuntu", state=state))
        assert not result.ok
        assert "not detected" in result.message
        assert state.lifecycle.kind == LifecycleKind.NOT_INSTALLED

    def test_redetects_after_install(self, ctx, mock, apps):
        assert not asyncio.run(ctx.detect("nginx")).installed
        _installed_nginx(mock)
        asyncio.run(install_application(ctx, apps.get("nginx"), os_id="ubuntu"))
        assert asyncio.run(ctx.detect("nginx")).installed

    def test_unknown_application(self, ctx, mock):
        app = ApplicationDefinition(id="caddy", name="Caddy")
        result = asyncio.run(install_application(ctx, app, os_id="ubuntu"))
        assert not result.ok
        assert result.message == "No service available for Caddy"
        assert mock.commands == []


class TestRemoveApplication:
    def test_purge_on_apt(self, ctx, mock, apps):
        result = asyncio.run(remove_application(ctx, apps.get("nginx"), os_id="ubuntu", purge=True))
        assert result.ok
        assert mock.commands == ["sudo apt-get purge -y nginx"]

    def test_remove_failure(self, ctx, mock, apps):
        mock.set_failure("pacman -R", "error: target not found: redis")
        result = asyncio.run(remove_application(ctx, apps.get("redis"), os_id="arch"))
        assert not result.ok
        assert "target not found" in result.data["output"]
