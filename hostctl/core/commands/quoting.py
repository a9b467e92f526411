"""
Shell and SQL quoting for command strings.

Executors take one opaque shell string, so every untrusted substring
(paths, names, passwords) must be quoted before it is spliced in.
"""

from __future__ import annotations

import re

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def shell_quote(value: str) -> str:
    """Wrap in single quotes, escaping embedded ``'`` as ``'\\''``."""
    return "'" + value.replace("'", "'\\''") + "'"


def sql_string(value: str, escape_backslash: bool = True) -> str:
    """SQL string literal with quotes (and, for MySQL, backslashes) escaped.

    PostgreSQL treats backslashes literally under
    ``standard_conforming_strings``; pass ``escape_backslash=False`` there.
    """
    if escape_backslash:
        value = value.replace("\\", "\\\\")
    return "'" + value.replace("'", "''") + "'"


def is_safe_identifier(name: str) -> bool:
    """Database, user and unit names we are willing to splice into SQL/shell."""
    return bool(_IDENTIFIER_RE.match(name))
