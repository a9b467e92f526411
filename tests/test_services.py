"""
Tests for software services: output parsers and service operations
against a scripted host.
"""

import asyncio

from hostctl.adapters.mock import MockExecutor
from hostctl.core.commands.package_manager import PackageManagerKind
from hostctl.core.detection.detectors import builtin_detectors
from hostctl.core.models.software import SoftwareStatusKind
from hostctl.core.services import mongodb, mysql, nginx, php, postgresql, redis, versioning
from hostctl.core.services.apache import parse_apache_modules
from hostctl.core.services.formatting import format_bytes, format_uptime
from hostctl.core.services.resolver import ServiceResolver
from hostctl.core.services.runtimes import parse_nvm_list, parse_python_version

# ── Formatting and versions ──────────────────────────────────────────


class TestFormatting:
    def test_uptime_minutes_only(self):
        assert format_uptime(300) == "5m"

    def test_uptime_hours(self):
        assert format_uptime("7200") == "2h 0m"

    def test_uptime_days(self):
        assert format_uptime(90061) == "1d 1h 1m"

    def test_uptime_unparsable_passthrough(self):
        assert format_uptime("n/a") == "n/a"

    def test_bytes(self):
        assert format_bytes(512) == "512 B"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(5 * 1024 * 1024) == "5.0 MB"


class TestVersioning:
    def test_mysql(self):
        assert versioning.parse_mysql_version("mysql  Ver 8.0.36 for Linux on x86_64") == "8.0.36"

    def test_mariadb(self):
        text = "mysql  Ver 15.1 Distrib 10.11.6-MariaDB, for debian-linux-gnu"
        assert versioning.parse_mysql_version(text) == "10.11.6"

    def test_postgres(self):
        assert versioning.parse_postgres_version("psql (PostgreSQL) 16.2") == "16.2"

    def test_redis(self):
        assert versioning.parse_redis_version("Redis server v=7.2.4 sha=00000000:0") == "7.2.4"

    def test_apache(self):
        assert versioning.parse_apache_version("Server version: Apache/2.4.58 (Ubuntu)") == "2.4.58"

    def test_mongodb(self):
        assert versioning.parse_mongodb_version("db version v7.0.5") == "7.0.5"

    def test_nothing(self):
        assert versioning.first_version("no digits here") == ""

    def test_runtimes(self):
        assert parse_python_version("Python 3.12.3\n") == "3.12.3"
        assert parse_nvm_list("->     v20.11.0\n       v18.19.0\ndefault -> v20.11.0") == ["20.11.0", "18.19.0"]


# ── nginx / Apache ───────────────────────────────────────────────────


class TestNginxParsers:
    STUB = (
        "Active connections: 3 \n"
        "server accepts handled requests\n"
        " 120 118 340 \n"
        "Reading: 0 Writing: 1 Waiting: 2 \n"
    )

    def test_stub_status(self):
        status = nginx.parse_stub_status(self.STUB)
        assert status.active_connections == 3
        assert (status.accepts, status.handled, status.requests) == (120, 118, 340)
        assert (status.reading, status.writing, status.waiting) == (0, 1, 2)

    def test_stub_status_garbage(self):
        assert nginx.parse_stub_status("404 Not Found").requests == 0

    def test_configure_arguments(self):
        text = (
            "nginx version: nginx/1.24.0\n"
            "configure arguments: --prefix=/usr --with-http_ssl_module "
            "--with-http_v2_module --add-dynamic-module=/build/ngx_brotli/"
        )
        modules, args = nginx.parse_configure_arguments(text)
        assert modules == ["http_ssl", "http_v2", "ngx_brotli"]
        assert args[0] == "--prefix=/usr"

    def test_configure_arguments_missing(self):
        assert nginx.parse_configure_arguments("nginx version: nginx/1.24.0") == ([], [])

    def test_merge_sites(self):
        sites = nginx.merge_sites(
            ["default", "shop"], ["shop", "orphan"], "/etc/nginx",
            ["api.conf", "README"], "/etc/nginx/conf.d",
        )
        by_name = {s.name: s for s in sites}
        assert [s.name for s in sites] == ["api.conf", "default", "orphan", "shop"]
        assert not by_name["default"].enabled
        assert by_name["shop"].enabled
        assert by_name["orphan"].path == "/etc/nginx/sites-enabled/orphan"
        assert by_name["api.conf"].path == "/etc/nginx/conf.d/api.conf"

    def test_access_log(self):
        line = (
            '203.0.113.9 - - [10/Mar/2024:13:55:36 +0000] "GET /login HTTP/1.1" 403 153 '
            '"-" "curl/8.5.0"'
        )
        entries = nginx.parse_access_log(line + "\nnot a log line\n")
        assert len(entries) == 1
        entry = entries[0]
        assert entry.ip == "203.0.113.9"
        assert entry.request == "GET /login HTTP/1.1"
        assert entry.status == "403"
        assert entry.user_agent == "curl/8.5.0"
        assert entry.country == "Unknown"

    def test_log_window_first_page(self):
        assert nginx.log_window(250, 1, 100) == (100, 100)

    def test_log_window_last_partial_page(self):
        assert nginx.log_window(250, 3, 100) == (250, 50)

    def test_log_window_past_start(self):
        assert nginx.log_window(250, 4, 100) is None

    def test_access_log_directive(self):
        assert nginx.parse_access_log_directive("  access_log /var/log/nginx/shop.log combined;") == (
            "/var/log/nginx/shop.log"
        )
        assert nginx.parse_access_log_directive("access_log off;") == ""
        assert nginx.parse_access_log_directive("error_log /x;") == ""

    def test_error_pages(self):
        text = "# custom\nerror_page 404 /404.html;\nerror_page 500 /50x.html;\n#error_page 403 /x;\n"
        assert nginx.parse_error_pages(text) == {"404": "/404.html", "500": "/50x.html"}

    def test_apache_modules(self):
        text = "Loaded Modules:\n core_module (static)\n ssl_module (shared)\n rewrite_module (shared)\n"
        assert parse_apache_modules(text) == ["core", "rewrite", "ssl"]


class TestNginxService:
    def _service(self, mock):
        return ServiceResolver(mock).resolve("nginx")

    def test_reload_refused_when_config_test_fails(self):
        mock = MockExecutor()
        mock.set_response("nginx -t", "nginx: [emerg] unknown directive", exit_code=1)
        assert not asyncio.run(self._service(mock).reload())
        assert not mock.was_called_with("systemctl reload")

    def test_reload_after_passing_test(self):
        mock = MockExecutor()
        mock.set_response("nginx -t", "nginx: configuration file /etc/nginx/nginx.conf test is successful")
        assert asyncio.run(self._service(mock).reload())
        assert mock.was_called_with("sudo systemctl reload nginx")

    def test_waf_logs_page(self):
        mock = MockExecutor()
        mock.set_response("test -f '/var/log/nginx/access.log'", "")
        mock.set_response("wc -l <", "2")
        mock.set_response("tail -n 2", (
            '1.1.1.1 - - [t1] "GET / HTTP/1.1" 200 1 "-" "a"\n'
            '2.2.2.2 - - [t2] "GET /b HTTP/1.1" 404 1 "-" "b"\n'
        ))
        entries, total = asyncio.run(self._service(mock).waf_logs("All"))
        assert total == 2
        assert [e.ip for e in entries] == ["2.2.2.2", "1.1.1.1"]

    def test_waf_logs_empty_file(self):
        mock = MockExecutor()
        mock.set_response("wc -l <", "0")
        assert asyncio.run(self._service(mock).waf_logs()) == ([], 0)

    def test_site_access_log_directive_wins(self):
        mock = MockExecutor()
        mock.set_response("grep 'access_log' '/etc/nginx/sites-enabled/shop'", "access_log /var/log/nginx/shop.log;")
        assert asyncio.run(self._service(mock).access_log_path("shop")) == "/var/log/nginx/shop.log"


# ── PHP ──────────────────────────────────────────────────────────────


class TestPHPParsers:
    def test_modules(self):
        names = [e.name for e in php.parse_php_modules("[PHP Modules]\nCore\ncurl\nmbstring\n\n[Zend Modules]\n")]
        assert names == ["Core", "curl", "mbstring"]

    def test_disabled_functions(self):
        assert php.parse_disabled_functions("exec, system,passthru,") == ["exec", "passthru", "system"]
        assert php.parse_disabled_functions("") == []

    def test_versions(self):
        assert php.parse_versions("7.4\n8.2\nmods-available\n") == ["7.4", "8.2"]

    def test_fpm_status(self):
        text = "pool:                 www\nprocess manager:      dynamic\nactive processes:     1\naccepted conn:        42\n"
        status = php.parse_fpm_status(text)
        assert status.pool == "www"
        assert status.active_processes == 1
        assert status.accepted_connections == 42

    def test_fpm_status_not_a_status_page(self):
        assert php.parse_fpm_status("<html>404</html>") is None

    def test_phpinfo(self):
        text = (
            "PHP Version => 8.2.7\n"
            "Server API => Command Line Interface\n"
            "memory_limit => 128M => 128M\n"
        )
        info = php.parse_phpinfo(text)
        assert info["PHP Version"] == "8.2.7"
        assert info["SAPI"] == "Command Line Interface"
        assert info["Memory Limit"] == "128M"


class TestPHPService:
    def test_service_name_follows_active_version(self):
        mock = MockExecutor()
        mock.set_response("PHP_MAJOR_VERSION", "8.2")
        service = ServiceResolver(mock).resolve("php")
        assert asyncio.run(service.service_name()) == "php8.2-fpm"

    def test_switch_version_rejects_garbage(self):
        service = ServiceResolver(MockExecutor()).resolve("php")
        assert not asyncio.run(service.switch_version("8.2; reboot")).ok


# ── Databases ────────────────────────────────────────────────────────


class TestMySQLParsers:
    def test_database_names_drop_system(self):
        text = "information_schema\nmysql\nperformance_schema\nsys\nshop\nblog\n"
        assert mysql.parse_database_names(text) == ["shop", "blog"]

    def test_database_rows(self):
        rows = mysql.parse_database_rows("Database\tSize (MB)\tTables\nshop\t1.50\t12\n")
        assert rows[0].name == "shop"
        assert rows[0].size == "1.50 MB"
        assert rows[0].table_count == 12

    def test_user_rows(self):
        users = mysql.parse_user_rows("User\tHost\nroot\tlocalhost\napp\t%\n")
        assert [u.id for u in users] == ["root@localhost", "app@%"]

    def test_status(self):
        values = mysql.parse_global_status("Variable_name\tValue\nUptime\t3600\nQuestions\t7200\n")
        status = mysql.build_status(values, "8.0.36")
        assert status.uptime == "1h 0m"
        assert status.qps == "2.0"

    def test_invalid_names(self):
        assert not mysql.is_valid_database_name("a")
        assert not mysql.is_valid_database_name("mysql")
        assert not mysql.is_valid_database_name("x`; DROP")


class TestMySQLService:
    def test_create_database_rejects_bad_name(self):
        mock = MockExecutor()
        service = ServiceResolver(mock).resolve("mysql")
        assert not asyncio.run(service.create_database("bad name")).ok
        assert mock.call_count == 0

    def test_create_user_escapes_password(self):
        mock = MockExecutor()
        mock.set_response("CREATE USER", "CREATED")
        service = ServiceResolver(mock).resolve("mysql")
        assert asyncio.run(service.create_user("app", "pa'ss")).ok
        assert "pa'\\'''\\''ss" in mock.commands[0]


class TestPostgresParsers:
    def test_database_names(self):
        text = " postgres \n template0\n shop \n"
        assert postgresql.parse_database_names(text) == ["shop"]

    def test_database_rows(self):
        rows = postgresql.parse_database_rows(" shop | 8537 kB\n")
        assert rows[0].name == "shop"
        assert rows[0].size == "8537 kB"

    def test_user_rows(self):
        users = postgresql.parse_user_rows(" postgres | t | t\n app | f | t\n")
        assert users[0].privileges == "SUPERUSER, CREATEDB"
        assert users[1].privileges == "CREATEDB"

    def test_cluster_versions(self):
        assert postgresql.parse_cluster_versions("16 main 5432 online\n14 main 5433 down\n") == ["14", "16"]


class TestMongoParsers:
    def test_database_rows(self):
        rows = mongodb.parse_database_rows("admin\t40960\nshop\t2097152\n")
        assert rows[1].size == "2.0 MB"

    def test_user_rows(self):
        users = mongodb.parse_user_rows("admin\troot,userAdminAnyDatabase\n")
        assert users[0].privileges == "root,userAdminAnyDatabase"


class TestRedisParsers:
    def test_keyspace(self):
        rows = redis.parse_keyspace("# Keyspace\ndb0:keys=5,expires=0,avg_ttl=0\ndb2:keys=1,expires=1\n")
        assert [(r.name, r.size) for r in rows] == [("db0", "5 keys"), ("db2", "1 keys")]

    def test_acl_users(self):
        assert redis.parse_acl_users("user default on nopass ~* +@all\nuser app on #abc ~* +@all\n") == [
            "default", "app",
        ]

    def test_config_get_pairs(self):
        assert redis.parse_config_get("maxmemory\n0\nmaxmemory-policy\nnoeviction\n") == [
            ("maxmemory", "0"), ("maxmemory-policy", "noeviction"),
        ]

    def test_config_get_empty_value(self):
        assert redis.parse_config_get("requirepass\n\n") == [("requirepass", "")]

    def test_info(self):
        info = redis.parse_info("# Server\r\nredis_version:7.2.4\r\nuptime_in_seconds:60\r\n")
        assert info["redis_version"] == "7.2.4"


class TestRedisService:
    def test_config_get_filters_other_keys(self):
        mock = MockExecutor()
        mock.set_response("CONFIG GET", "maxmemory\n100mb")
        service = ServiceResolver(mock).resolve("redis")
        assert asyncio.run(service.config_get("maxmemory")) == [("maxmemory", "100mb")]
        assert asyncio.run(service.config_get("timeout")) == []

    def test_delete_database_only_keyspaces(self):
        service = ServiceResolver(MockExecutor()).resolve("redis")
        assert not asyncio.run(service.delete_database("shop")).ok

    def test_flush(self):
        mock = MockExecutor()
        mock.set_response("FLUSHDB", "OK")
        service = ServiceResolver(mock).resolve("redis")
        assert asyncio.run(service.delete_database("db3")).ok
        assert mock.was_called_with("redis-cli -n 3 FLUSHDB")


# ── Base service / resolver ──────────────────────────────────────────


class TestSoftwareService:
    def test_status_not_installed(self):
        service = ServiceResolver(MockExecutor()).resolve("nginx")
        status = asyncio.run(service.get_status())
        assert status.kind == SoftwareStatusKind.NOT_INSTALLED

    def test_status_running(self):
        mock = MockExecutor()
        mock.set_response("which nginx", "/usr/sbin/nginx")
        mock.set_response("nginx -v", "nginx version: nginx/1.24.0")
        mock.set_response("is-active", "active")
        status = asyncio.run(ServiceResolver(mock).resolve("nginx").get_status())
        assert status.kind == SoftwareStatusKind.RUNNING
        assert status.version == "1.24.0"

    def test_runtime_reports_installed(self):
        mock = MockExecutor()
        mock.set_response("which python3", "/usr/bin/python3")
        mock.set_response("python3 --version", "3.12.3")
        status = asyncio.run(ServiceResolver(mock).resolve("python").get_status())
        assert status.kind == SoftwareStatusKind.INSTALLED

    def test_runtime_refuses_control(self):
        mock = MockExecutor()
        assert not asyncio.run(ServiceResolver(mock).resolve("node").start())
        assert mock.call_count == 0

    def test_install_invalidates_cache(self):
        mock = MockExecutor()
        resolver = ServiceResolver(mock, packages={"nginx": ["nginx"]})
        service = resolver.resolve("nginx")
        asyncio.run(service.detection())
        assert ("nginx", "local") in resolver.cache

        result = asyncio.run(service.install(PackageManagerKind.APT))

        assert result.ok
        assert ("nginx", "local") not in resolver.cache
        assert mock.was_called_with("sudo apt-get install -y nginx")

    def test_install_failure_keeps_output(self):
        mock = MockExecutor()
        mock.set_failure("apt-get install", "E: Unable to locate package", exit_code=100)
        service = ServiceResolver(mock, packages={"nginx": ["nginx"]}).resolve("nginx")
        result = asyncio.run(service.install(PackageManagerKind.APT))
        assert not result.ok
        assert "Unable to locate" in result.data["output"]


class TestServiceResolver:
    def test_aliases(self):
        resolver = ServiceResolver(MockExecutor())
        assert resolver.resolve("httpd") is resolver.resolve("apache")
        assert resolver.resolve("mariadb").software_id == "mysql"

    def test_unknown(self):
        assert ServiceResolver(MockExecutor()).resolve("tomcat") is None

    def test_known_ids(self):
        assert set(ServiceResolver(MockExecutor()).known_ids()) == set(builtin_detectors())
