"""
Tests for the per-session context.
"""

import asyncio

from hostctl.core.config.loader import Settings
from hostctl.core.context import SessionContext
from hostctl.core.models.software import DetectionState


class TestSessionContext:
    def test_detect_is_cached(self, ctx, mock):
        mock.set_response("which nginx", "/usr/sbin/nginx\n")
        first = asyncio.run(ctx.detect("nginx"))
        calls = len(mock.commands)
        second = asyncio.run(ctx.detect("nginx"))
        assert first.installed
        assert second == first
        assert len(mock.commands) == calls

    def test_detect_alias(self, ctx, mock):
        mock.set_response("which apache2", "/usr/sbin/apache2\n")
        assert asyncio.run(ctx.detect("httpd")).software_id == "apache"

    def test_detect_unknown(self, ctx, mock):
        result = asyncio.run(ctx.detect("tomcat"))
        assert result.state == DetectionState.NOT_INSTALLED
        assert mock.commands == []

    def test_close_drops_session_cache(self, ctx, mock):
        mock.set_response("which nginx", "/usr/sbin/nginx\n")
        asyncio.run(ctx.detect("nginx"))
        ctx.close()
        assert ctx.cache.get("nginx", ctx.session_id) is None

    def test_sessions_do_not_share_cache(self, mock, apps):
        a = SessionContext.create(mock, settings=Settings(settle_delay=0), apps=apps)
        b = SessionContext.create(mock, settings=Settings(settle_delay=0), apps=apps)
        assert a.session_id != b.session_id
        assert a.cache is not b.cache

    def test_run_uses_default_timeout(self, mock, apps):
        ctx = SessionContext.create(mock, settings=Settings(command_timeout=7), apps=apps)
        asyncio.run(ctx.run("uptime"))
        assert [(c.command, c.timeout) for c in mock.call_log] == [("uptime", 7.0)]
