"""
Tests for core models: results, applications, software status and state.
"""

import itertools

import pytest
from pydantic import ValidationError

from hostctl.core.models.application import (
    ApplicationDefinition,
    Capability,
    SectionDefinition,
    SectionProviderType,
    canonical_app_id,
)
from hostctl.core.models.result import EXIT_CONNECTION_LOST, EXIT_TIMEOUT, CommandResult, OperationResult
from hostctl.core.models.software import SoftwareStatus, SoftwareStatusKind
from hostctl.core.models.state import (
    ApplicationState,
    ConfigValue,
    LifecycleKind,
    LifecycleState,
)


def _section(id: str, order: int, provider_type: str = "service", **kw) -> SectionDefinition:
    return SectionDefinition(id=id, name=id.title(), provider_type=provider_type, order=order, **kw)


# ── CommandResult ────────────────────────────────────────────────────


class TestCommandResult:
    def test_ok(self):
        assert CommandResult(command="ls").ok
        assert not CommandResult(command="ls", exit_code=2).ok

    def test_lines(self):
        result = CommandResult(output="  a \n\n b\n")
        assert result.lines() == ["a", "b"]
        assert result.stripped == "a \n\n b"

    def test_connection_lost(self):
        result = CommandResult.connection_lost("ls", "gone")
        assert result.exit_code == EXIT_CONNECTION_LOST
        assert result.output == "gone"

    def test_timed_out_keeps_partial(self):
        result = CommandResult.timed_out("sleep 9", "partial", 1.5)
        assert result.exit_code == EXIT_TIMEOUT
        assert result.output == "partial"
        assert result.elapsed_time == 1.5

    def test_frozen(self):
        with pytest.raises(ValidationError):
            CommandResult(command="ls").exit_code = 1

    def test_operation_result(self):
        assert OperationResult.success("done", path="/tmp/x").data == {"path": "/tmp/x"}
        assert not OperationResult.failure("nope").ok


# ── ApplicationDefinition ────────────────────────────────────────────


class TestApplicationDefinition:
    SECTIONS = [("a", 0), ("b", 1), ("c", 1), ("d", 2)]

    @pytest.mark.parametrize("declared", list(itertools.permutations(SECTIONS)))
    def test_sorted_sections_stable(self, declared):
        app = ApplicationDefinition(id="x", name="X", sections=[_section(i, o) for i, o in declared])
        ordered = app.sorted_sections
        orders = [s.order for s in ordered]
        assert orders == sorted(orders)
        tied = [i for i, o in declared if o == 1]
        assert [s.id for s in ordered if s.id in tied] == tied

    @pytest.mark.parametrize("declared", list(itertools.permutations(SECTIONS)))
    def test_default_section_flagged_in_any_order(self, declared):
        sections = [_section(i, o, is_default=(i == "c")) for i, o in declared]
        app = ApplicationDefinition(id="x", name="X", sections=sections)
        assert app.default_section.id == "c"

    def test_default_section_flagged(self):
        app = ApplicationDefinition(id="x", name="X", sections=[
            _section("a", 0), _section("b", 1, is_default=True),
        ])
        assert app.default_section.id == "b"

    def test_default_section_first_declared(self):
        app = ApplicationDefinition(id="x", name="X", sections=[_section("z", 5), _section("a", 0)])
        assert app.default_section.id == "z"

    def test_default_section_empty(self):
        assert ApplicationDefinition(id="x", name="X").default_section is None

    def test_identity_is_id(self):
        a = ApplicationDefinition(id="nginx", name="Nginx")
        b = ApplicationDefinition(id="nginx", name="Other")
        assert a == b
        assert len({a, b}) == 1

    def test_capabilities(self):
        app = ApplicationDefinition(id="x", name="X", capabilities=["hasLogs", "controllable"])
        assert app.has_capability(Capability.HAS_LOGS)
        assert app.has_capability("controllable")
        assert not app.has_capability(Capability.HAS_FPM)

    def test_unknown_provider_type_rejected(self):
        with pytest.raises(ValidationError):
            _section("a", 0, provider_type="nonsense")

    def test_get_section_by_id_or_type(self):
        app = ApplicationDefinition(id="x", name="X", sections=[
            _section("cfg", 0, provider_type="configFile"),
        ])
        assert app.get_section("CFG").id == "cfg"
        assert app.get_section("configfile").id == "cfg"
        assert app.get_section("logs") is None

    def test_packages_for_override(self):
        app = ApplicationDefinition(
            id="apache", name="Apache", packages=["apache2"], package_overrides={"dnf": ["httpd"]},
        )
        assert app.packages_for("dnf") == ["httpd"]
        assert app.packages_for("apt") == ["apache2"]

    def test_canonical_ids(self):
        assert canonical_app_id("HTTPD") == "apache"
        assert canonical_app_id("nodejs") == "node"
        assert canonical_app_id("nginx") == "nginx"

    def test_provider_type_values(self):
        assert SectionProviderType("wafStats") is SectionProviderType.WAF_STATS


# ── Software status and lifecycle ────────────────────────────────────


class TestSoftwareStatus:
    def test_str(self):
        assert str(SoftwareStatus.not_installed()) == "not installed"
        assert str(SoftwareStatus.running("1.24.0")) == "running (1.24.0)"

    def test_flags(self):
        assert SoftwareStatus.stopped("1").is_installed
        assert not SoftwareStatus.stopped("1").is_running
        assert SoftwareStatus.installed("3.12").is_installed


class TestLifecycleState:
    def test_display_text(self):
        assert LifecycleState().display_text == "Not Installed"
        assert LifecycleState(kind="installing", progress=0.45).display_text == "Installing (45%)"
        assert LifecycleState(kind="running", version="1.24").display_text == "Running: 1.24"
        assert LifecycleState(kind="broken", reason="dpkg lock").display_text == "Error: dpkg lock"

    def test_multiple_versions_text(self):
        state = LifecycleState(kind="multiple_versions_installed", versions=["8.1", "8.2"], active="8.2")
        assert state.display_text == "Installed: 2 versions (Active: 8.2)"

    def test_installing_not_actionable(self):
        assert not LifecycleState(kind="installing").is_actionable
        assert LifecycleState(kind="stopped").is_actionable

    def test_from_status(self):
        assert LifecycleState.from_status(SoftwareStatus.running("1")).kind == LifecycleKind.RUNNING
        assert LifecycleState.from_status(SoftwareStatus.stopped("1")).kind == LifecycleKind.STOPPED
        assert LifecycleState.from_status(SoftwareStatus.not_installed()).kind == LifecycleKind.NOT_INSTALLED

    def test_from_status_multiple_versions(self):
        state = LifecycleState.from_status(
            SoftwareStatus(kind=SoftwareStatusKind.INSTALLED, version="8.2"),
            versions=["8.1", "8.2"], active="8.2",
        )
        assert state.kind == LifecycleKind.MULTIPLE_VERSIONS_INSTALLED
        assert state.active == "8.2"

    def test_from_status_single_runtime(self):
        state = LifecycleState.from_status(SoftwareStatus.installed("3.12.3"), versions=["3.12.3"])
        assert state.kind == LifecycleKind.INSTALLED
        assert state.display_text == "Installed: 3.12.3"


# ── ApplicationState ─────────────────────────────────────────────────


class TestApplicationState:
    def test_reset_in_place(self):
        state = ApplicationState(version="1.0", error_message="x")
        state.config_values.append(ConfigValue(key="k", value="v"))
        ident = id(state)
        state.reset()
        assert id(state) == ident
        assert state.version == ""
        assert state.config_values == []
        assert state.error_message == ""

    def test_scratch_is_deep(self):
        state = ApplicationState()
        scratch = state.scratch()
        scratch.modules.append("http_ssl")
        assert state.modules == []

    def test_copy_fields(self):
        state = ApplicationState()
        source = ApplicationState(version="2", binary_path="/x")
        state.copy_fields(source, ["version"])
        assert state.version == "2"
        assert state.binary_path == ""

    def test_copy_unknown_field(self):
        with pytest.raises(KeyError):
            ApplicationState().copy_fields(ApplicationState(), ["nope"])
