"""
hostctl: CLI entrypoint.

Usage:
    hostctl --help
    hostctl detect
    hostctl --host web1 --user admin section nginx configuration
    hostctl pkg-command fedora install nginx
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path

import click

from hostctl import __version__
from hostctl.core.observability.logging_config import (
    LOG_FILE_ENV,
    LOG_FILE_LEVEL_ENV,
    level_from_flags,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="hostctl")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--apps",
    "apps_file",
    type=click.Path(exists=False),
    default=None,
    help="Application definitions YAML (default: bundled applications.yml).",
)
@click.option("--host", default=None, help="Remote host (default: run locally).")
@click.option("--user", default=None, help="SSH user (default: $USER).")
@click.option("--port", default=22, show_default=True, help="SSH port.")
@click.option("--key", "key_file", type=click.Path(exists=False), default=None, help="SSH private key file.")
@click.option("--mock", is_flag=True, help="Dry run against a mock host (every command succeeds).")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    apps_file: str | None,
    host: str | None,
    user: str | None,
    port: int,
    key_file: str | None,
    mock: bool,
) -> None:
    """hostctl: detect, inspect and control server software on a host."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["apps_file"] = Path(apps_file) if apps_file else None
    ctx.obj["connection"] = {"host": host, "user": user, "port": port, "key_file": key_file}
    ctx.obj["mock"] = mock

    setup_logging(
        level=level_from_flags(debug, verbose, quiet),
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
        quiet_third_party=not debug,
    )


# ── Session helpers ─────────────────────────────────────────────


def _session(ctx: click.Context):
    """Build the SessionContext for this invocation (once)."""
    if "session" in ctx.obj:
        return ctx.obj["session"]

    from hostctl.core.config.loader import ConfigError, load_settings
    from hostctl.core.context import SessionContext

    try:
        settings = load_settings()
        if ctx.obj.get("apps_file"):
            settings.apps_file = ctx.obj["apps_file"]
        session = SessionContext.create(_executor(ctx), settings=settings)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(2)

    ctx.obj["session"] = session
    return session


def _executor(ctx: click.Context):
    """The injected executor, a mock, an SSH executor, or the local one."""
    if ctx.obj.get("executor") is not None:
        return ctx.obj["executor"]

    if ctx.obj.get("mock"):
        from hostctl.adapters.mock import MockExecutor
        return MockExecutor()

    conn = ctx.obj["connection"]
    if not conn["host"]:
        from hostctl.adapters.local import LocalExecutor
        return LocalExecutor()

    import paramiko

    from hostctl.adapters.ssh import ParamikoExecutor, connect_client

    user = conn["user"] or os.environ.get("USER", "root")
    try:
        client = connect_client(conn["host"], user, port=conn["port"], key_filename=conn["key_file"])
    except (paramiko.SSHException, OSError) as e:
        click.secho(f"❌ Cannot connect to {user}@{conn['host']}:{conn['port']}: {e}", fg="red", err=True)
        sys.exit(2)
    return ParamikoExecutor(client)


def _application(session, app_id: str):
    app = session.apps.get(app_id)
    if app is None:
        click.secho(f"❌ Unknown application: {app_id}", fg="red", err=True)
        click.echo(f"   Known: {', '.join(a.id for a in session.apps.all())}", err=True)
        sys.exit(1)
    return app


# ── Commands ────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def detect(ctx: click.Context, as_json: bool) -> None:
    """Probe every known software concurrently."""
    from hostctl.core.detection.detectors import detect_all

    session = _session(ctx)

    async def _run() -> list[dict]:
        results = await detect_all(session.detectors.values(), session.executor)
        rows = []
        for result in results.values():
            session.cache.put(session.session_id, result)
            row = {"software": result.software_id, "installed": result.installed, "status": "not installed", "version": ""}
            service = session.resolver.resolve(result.software_id)
            if result.installed and service is not None:
                status = await service.get_status()
                row["status"] = status.kind.value
                row["version"] = status.version
            rows.append(row)
        return rows

    rows = asyncio.run(_run())

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    click.echo()
    for row in rows:
        if not row["installed"]:
            click.secho(f"   ✗ {row['software']:<12} not installed", fg="white", dim=True)
            continue
        color = "green" if row["status"] == "running" else "yellow"
        click.secho(f"   ✓ {row['software']:<12} ", fg="green", nl=False)
        click.secho(f"{row['status']:<10}", fg=color, nl=False)
        click.echo(f" {row['version']}")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apps(ctx: click.Context, as_json: bool) -> None:
    """List application definitions and their sections."""
    from hostctl.core.config.loader import ApplicationRegistry, ConfigError

    try:
        registry = ApplicationRegistry.load(ctx.obj.get("apps_file"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(2)

    if as_json:
        payload = [
            {
                "id": app.id,
                "name": app.name,
                "category": app.category.value,
                "capabilities": sorted(c.value for c in app.capabilities),
                "sections": [s.id for s in app.sorted_sections],
                "default_section": app.default_section.id if app.default_section else None,
            }
            for app in registry.all()
        ]
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo()
    for app in registry.all():
        click.secho(f"📦 {app.name}", fg="cyan", bold=True, nl=False)
        click.echo(f"  ({app.id}, {app.category.value})")
        default = app.default_section
        for section in app.sorted_sections:
            marker = " ← default" if default is not None and section.id == default.id else ""
            running = " [requires running]" if section.requires_running else ""
            click.echo(f"     • {section.id}{running}{marker}")
    click.echo()


@cli.command()
@click.argument("app_id")
@click.argument("section_id")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def section(ctx: click.Context, app_id: str, section_id: str, as_json: bool) -> None:
    """Load one section of an application and print what it populated."""
    from hostctl.core.errors import SectionProviderError
    from hostctl.core.sections.loader import SectionLoader
    from hostctl.core.sections.registry import provider_for

    session = _session(ctx)
    app = _application(session, app_id)
    definition = app.get_section(section_id)
    if definition is None:
        click.secho(f"❌ {app.name} has no section '{section_id}'", fg="red", err=True)
        sys.exit(1)

    loader = SectionLoader(session)
    try:
        committed = asyncio.run(loader.load(app, definition))
    except SectionProviderError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if not committed:
        click.secho(f"⚠️  {loader.state.error_message}", fg="yellow", err=True)
        sys.exit(1)

    fields = set(provider_for(definition.provider_type).owns)
    data = loader.state.model_dump(mode="json", include=fields)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo()
    click.secho(f"{app.name} › {definition.name}", fg="cyan", bold=True)
    for name, value in data.items():
        if isinstance(value, str) and "\n" in value:
            click.secho(f"   {name}:", bold=True)
            for line in value.splitlines():
                click.echo(f"      {line}")
        elif isinstance(value, list):
            click.secho(f"   {name}: ", bold=True, nl=False)
            click.echo(f"{len(value)} item(s)")
            for item in value:
                click.echo(f"     • {_describe(item)}")
        else:
            click.secho(f"   {name}: ", bold=True, nl=False)
            click.echo(_describe(value))
    click.echo()


def _describe(value: object) -> str:
    if isinstance(value, dict):
        if "key" in value and "value" in value:
            return f"{value['key']} = {value['value']}"
        if "name" in value:
            return str(value["name"])
        return ", ".join(f"{k}={v}" for k, v in value.items())
    return str(value)


@cli.command()
@click.argument("app_id")
@click.argument("action", type=click.Choice(["start", "stop", "restart", "reload", "enable", "disable"]))
@click.pass_context
def service(ctx: click.Context, app_id: str, action: str) -> None:
    """Run a systemd action against an application's service."""
    session = _session(ctx)
    app = _application(session, app_id)
    svc = session.resolver.resolve(app.id)
    if svc is None:
        click.secho(f"❌ No service backend for {app.name}", fg="red", err=True)
        sys.exit(1)

    ok = asyncio.run(svc.control(action))
    if ok:
        click.secho(f"✅ {app.name}: {action} succeeded", fg="green")
    else:
        click.secho(f"❌ {app.name}: {action} failed", fg="red")
        sys.exit(1)


@cli.command("pkg-command")
@click.argument("os_id")
@click.argument("action", type=click.Choice(["install", "update", "remove"]))
@click.argument("packages", nargs=-1)
@click.option("--with-update/--no-update", default=True, help="Refresh metadata before installing.")
@click.option("--purge", is_flag=True, help="Also remove configuration (apt only).")
def pkg_command(os_id: str, action: str, packages: tuple[str, ...], with_update: bool, purge: bool) -> None:
    """Print the package-manager command for OS_ID without running it."""
    from hostctl.core.commands.package_manager import (
        detect as detect_manager,
        install_command,
        remove_command,
        update_command,
    )

    kind = detect_manager(os_id)
    if action == "update":
        command = update_command(kind)
    elif action == "install":
        command = install_command(list(packages), kind, with_update)
    else:
        command = remove_command(list(packages), kind, purge)

    if not command:
        click.secho("❌ No packages given", fg="red", err=True)
        sys.exit(1)
    click.echo(command)


@cli.command()
@click.argument("app_id")
@click.option("--os", "os_id", default=None, help="OS id (default: read /etc/os-release).")
@click.pass_context
def install(ctx: click.Context, app_id: str, os_id: str | None) -> None:
    """Install an application's packages, then re-detect it."""
    from hostctl.core.use_cases.install import install_application

    session = _session(ctx)
    app = _application(session, app_id)

    if not ctx.obj.get("quiet"):
        click.echo(f"⏳ Installing {app.name}...")
    result = asyncio.run(install_application(session, app, os_id=os_id))

    if result.ok:
        version = result.data.get("version") or ""
        click.secho(f"✅ {result.message} {version}".rstrip(), fg="green")
    else:
        click.secho(f"❌ {result.message}", fg="red")
        if result.data.get("output"):
            click.echo(result.data["output"])
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
