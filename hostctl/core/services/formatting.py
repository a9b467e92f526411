"""Human-readable formatting for numbers read off a host."""

from __future__ import annotations


def format_uptime(seconds: int | str) -> str:
    """``"Xd Yh Zm"``, dropping leading zero units (``"5m"``, ``"2h 0m"``)."""
    try:
        total = int(seconds)
    except (TypeError, ValueError):
        return str(seconds)
    days, rest = divmod(max(total, 0), 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_bytes(size: int | float) -> str:
    """Binary units, one decimal above bytes: ``"512 B"``, ``"1.5 MB"``."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024 or unit == "TB":
            return f"{int(value)} B" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"
