"""Command builders: package-manager command lines and quoting helpers."""

from hostctl.core.commands.package_manager import (
    PackageManagerKind,
    detect,
    install_command,
    is_installed_command,
    os_id_from_release,
    parse_os_release,
    remove_command,
    update_command,
)
from hostctl.core.commands.quoting import is_safe_identifier, shell_quote, sql_string

__all__ = [
    "PackageManagerKind",
    "detect",
    "install_command",
    "is_installed_command",
    "is_safe_identifier",
    "os_id_from_release",
    "parse_os_release",
    "remove_command",
    "shell_quote",
    "sql_string",
    "update_command",
]
