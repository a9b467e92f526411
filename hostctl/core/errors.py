"""
Error taxonomy and the named predicates that classify command output.

Two channels exist and both are kept:

    1. Structural errors (SectionProviderError) are raised when a section
       cannot be served at all for an application. They abort that
       section's load only.
    2. Soft failures live inside CommandResult (exit code, output). They
       never raise; callers degrade to empty state plus a message.

Every substring heuristic used to read remote output is defined here as
a named predicate, so call sites say *what* they check, not *how*.
"""

from __future__ import annotations

from enum import StrEnum

from hostctl.core.models.result import EXIT_CONNECTION_LOST, EXIT_TIMEOUT, CommandResult


class HostctlError(Exception):
    """Base class for all hostctl errors."""


# ── Command failure taxonomy ────────────────────────────────────


class CommandFailure(HostctlError):
    """A remote command did not produce a usable result."""

    def __init__(self, message: str, result: CommandResult | None = None):
        super().__init__(message)
        self.result = result


class ConnectionLost(CommandFailure):
    """The command never reached the host, or the channel dropped."""


class CommandTimeout(CommandFailure):
    """The command did not finish within its timeout."""


class NonZeroExit(CommandFailure):
    """The command ran and exited with a non-zero status."""

    def __init__(self, code: int, output: str, result: CommandResult | None = None):
        super().__init__(f"Command exited with status {code}", result)
        self.code = code
        self.output = output


class ParseFailure(CommandFailure):
    """Output arrived but did not match the expected shape."""


class UnsupportedCapability(CommandFailure):
    """The application does not offer the requested operation."""


def classify(result: CommandResult) -> CommandFailure | None:
    """Map a CommandResult onto the failure taxonomy (None when it succeeded)."""
    if is_connection_lost(result):
        return ConnectionLost(result.output or "Connection lost", result)
    if is_timeout(result):
        return CommandTimeout(f"Timed out after {result.elapsed_time:.1f}s", result)
    if not succeeded(result):
        return NonZeroExit(result.exit_code, result.output, result)
    return None


# ── Section provider errors ─────────────────────────────────────


class SectionErrorKind(StrEnum):
    SESSION_NOT_AVAILABLE = "session_not_available"
    SERVICE_NOT_FOUND = "service_not_found"
    LOAD_FAILED = "load_failed"
    NOT_SUPPORTED = "not_supported"


class SectionProviderError(HostctlError):
    """Structural failure: a section cannot be served for this application."""

    def __init__(self, kind: SectionErrorKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(self.describe())

    def describe(self) -> str:
        if self.kind == SectionErrorKind.SESSION_NOT_AVAILABLE:
            return "SSH session is not available"
        if self.kind == SectionErrorKind.SERVICE_NOT_FOUND:
            return f"Service not found for application: {self.detail}"
        if self.kind == SectionErrorKind.LOAD_FAILED:
            return f"Failed to load section data: {self.detail}"
        return f"Section type '{self.detail}' is not supported for this application"

    @classmethod
    def session_not_available(cls) -> SectionProviderError:
        return cls(SectionErrorKind.SESSION_NOT_AVAILABLE)

    @classmethod
    def service_not_found(cls, app_id: str) -> SectionProviderError:
        return cls(SectionErrorKind.SERVICE_NOT_FOUND, app_id)

    @classmethod
    def load_failed(cls, reason: str) -> SectionProviderError:
        return cls(SectionErrorKind.LOAD_FAILED, reason)

    @classmethod
    def not_supported(cls, provider_type: str) -> SectionProviderError:
        return cls(SectionErrorKind.NOT_SUPPORTED, str(provider_type))


# ── Named predicates ────────────────────────────────────────────


def succeeded(result: CommandResult) -> bool:
    return result.exit_code == 0


def is_connection_lost(result: CommandResult) -> bool:
    return result.exit_code == EXIT_CONNECTION_LOST


def is_timeout(result: CommandResult) -> bool:
    if result.exit_code == EXIT_TIMEOUT:
        return True
    return result.exit_code != 0 and "timed out" in result.output.lower()


def is_nonempty(output: str) -> bool:
    return bool(output.strip())


def has_marker(output: str, *markers: str) -> bool:
    """Output carries one of the ``&& echo 'MARKER'`` confirmations."""
    return any(marker in output for marker in markers)


def has_ok_reply(output: str) -> bool:
    """redis-cli acknowledged a write (``OK``)."""
    return "OK" in output


def has_acl_deluser_reply(output: str) -> bool:
    """``ACL DELUSER`` answers with the number of users removed."""
    return "1" in output


def has_error_text(output: str) -> bool:
    """Client printed an access/usage error instead of rows."""
    lowered = output.lower()
    return "error" in lowered or "denied" in lowered


def is_config_test_ok(output: str) -> bool:
    """``nginx -t`` / ``apachectl -t`` reported a valid configuration."""
    lowered = output.lower()
    return any(
        phrase in lowered
        for phrase in ("syntax is ok", "test is successful", "syntax ok")
    )


def parse_count(output: str) -> int:
    """Read a ``wc -l`` style integer; anything unparsable counts as 0."""
    try:
        return int(output.strip())
    except ValueError:
        return 0
