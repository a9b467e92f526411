"""
Tests for the systemd helper and output sanitizing.
"""

import asyncio

import pytest

from hostctl.adapters.mock import MockExecutor
from hostctl.core.services.systemd import (
    ServiceAction,
    SystemdHelper,
    sanitize_output,
    strip_ansi,
)


class TestSanitize:
    def test_strip_csi(self):
        assert strip_ansi("\x1b[1;32mactive\x1b[0m") == "active"

    def test_strip_osc_title(self):
        assert strip_ansi("\x1b]0;user@host\x07active") == "active"

    def test_strip_charset_switch(self):
        assert strip_ansi("\x1b(Bactive") == "active"

    def test_sanitize_control_chars_and_whitespace(self):
        assert sanitize_output("  \x07active\r\n") == "active"


class TestSystemdHelper:
    @pytest.mark.parametrize("action", list(ServiceAction))
    def test_actions_use_sudo_systemctl(self, action):
        mock = MockExecutor()
        assert asyncio.run(SystemdHelper(mock).execute_action(action, "nginx"))
        assert mock.commands == [f"sudo systemctl {action.value} nginx"]

    def test_action_failure(self):
        mock = MockExecutor()
        mock.set_failure("systemctl restart", "Job for nginx.service failed")
        assert not asyncio.run(SystemdHelper(mock).restart("nginx"))

    def test_odd_unit_name_is_quoted(self):
        mock = MockExecutor()
        asyncio.run(SystemdHelper(mock).start("bad; rm -rf /"))
        assert mock.commands == ["sudo systemctl start 'bad; rm -rf /'"]

    def test_is_active_with_escape_codes(self):
        mock = MockExecutor()
        mock.set_response("is-active", "\x1b[0;1;32mactive\x1b[0m\n")
        assert asyncio.run(SystemdHelper(mock).is_active("nginx"))

    def test_inactive(self):
        mock = MockExecutor()
        mock.set_response("is-active", "inactive")
        assert not asyncio.run(SystemdHelper(mock).is_active("nginx"))

    def test_is_enabled(self):
        mock = MockExecutor()
        mock.set_response("is-enabled", "enabled")
        assert asyncio.run(SystemdHelper(mock).is_enabled("nginx"))

    def test_service_exists_via_loaded_units(self):
        mock = MockExecutor()
        mock.set_response("list-units", "nginx.service loaded active running")
        assert asyncio.run(SystemdHelper(mock).service_exists("nginx"))
        assert not mock.was_called_with("list-unit-files")

    def test_service_exists_via_unit_files(self):
        mock = MockExecutor()
        mock.set_response("list-unit-files", "php8.2-fpm.service enabled")
        assert asyncio.run(SystemdHelper(mock).service_exists("php8.2-fpm"))

    def test_service_missing(self):
        assert not asyncio.run(SystemdHelper(MockExecutor()).service_exists("nope"))

    def test_status_message_stripped(self):
        mock = MockExecutor()
        mock.set_response("systemctl status", "\x1b[0;1;32m●\x1b[0m nginx.service\n")
        assert asyncio.run(SystemdHelper(mock).status_message("nginx")) == "● nginx.service"
