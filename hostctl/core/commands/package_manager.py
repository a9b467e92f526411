"""
Package-manager command builder.

Pure functions: map an OS identifier (``ID`` from /etc/os-release) to
one of five package managers and build fully non-interactive
install/update/remove command lines for it. Nothing here touches a host.

Per manager:
    apt    → [sudo apt-get update || true && ]sudo apt-get install -y PKGS
    dnf    → [sudo dnf makecache -q || true && ]sudo dnf install -y -q PKGS
    yum    → [sudo yum makecache -q || true && ]sudo yum install -y -q PKGS
    pacman → sudo pacman -S --noconfirm --needed PKGS
    zypper → sudo zypper --non-interactive install PKGS

The optional refresh prefix is joined with ``|| true`` so a failed
metadata refresh never aborts the install that follows it.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Sequence

from hostctl.core.commands.quoting import shell_quote

logger = logging.getLogger(__name__)


class PackageManagerKind(StrEnum):
    APT = "apt"          # Debian, Ubuntu, Mint, Pop!_OS, Kali
    DNF = "dnf"          # Fedora, RHEL 8+, AlmaLinux, Rocky
    YUM = "yum"          # CentOS 7, RHEL 7
    PACMAN = "pacman"    # Arch, Manjaro
    ZYPPER = "zypper"    # openSUSE, SLES

    @classmethod
    def from_os_id(cls, os_id: str) -> PackageManagerKind:
        return detect(os_id)


_OS_TABLE: dict[str, PackageManagerKind] = {
    "ubuntu": PackageManagerKind.APT,
    "debian": PackageManagerKind.APT,
    "linuxmint": PackageManagerKind.APT,
    "mint": PackageManagerKind.APT,
    "pop": PackageManagerKind.APT,
    "kali": PackageManagerKind.APT,
    "raspbian": PackageManagerKind.APT,
    "elementary": PackageManagerKind.APT,
    "fedora": PackageManagerKind.DNF,
    "rhel": PackageManagerKind.DNF,
    "almalinux": PackageManagerKind.DNF,
    "alma": PackageManagerKind.DNF,
    "rocky": PackageManagerKind.DNF,
    "centos": PackageManagerKind.YUM,
    "arch": PackageManagerKind.PACMAN,
    "manjaro": PackageManagerKind.PACMAN,
    "sles": PackageManagerKind.ZYPPER,
}


def detect(os_id: str) -> PackageManagerKind:
    """Package manager for an OS id, case-insensitive.

    Unrecognized ids fall back to apt, which can produce valid but
    wrong commands on an unknown distro. The fallback is logged.
    """
    key = os_id.strip().strip('"').lower()
    if key in _OS_TABLE:
        return _OS_TABLE[key]
    if key.startswith("opensuse"):
        return PackageManagerKind.ZYPPER
    logger.info("Unrecognized OS id %r, defaulting to apt", os_id)
    return PackageManagerKind.APT


def install_command(
    packages: Sequence[str],
    kind: PackageManagerKind,
    with_update: bool = True,
) -> str:
    """Non-interactive install command, or "" when there is nothing to install."""
    if not packages:
        return ""
    pkgs = " ".join(packages)

    if kind == PackageManagerKind.APT:
        prefix = "sudo apt-get update || true && " if with_update else ""
        return f"{prefix}sudo apt-get install -y {pkgs}"
    if kind in (PackageManagerKind.DNF, PackageManagerKind.YUM):
        prefix = f"sudo {kind} makecache -q || true && " if with_update else ""
        return f"{prefix}sudo {kind} install -y -q {pkgs}"
    if kind == PackageManagerKind.PACMAN:
        return f"sudo pacman -S --noconfirm --needed {pkgs}"
    return f"sudo zypper --non-interactive install {pkgs}"


def update_command(kind: PackageManagerKind) -> str:
    """Refresh package metadata."""
    if kind == PackageManagerKind.APT:
        return "sudo apt-get update"
    if kind in (PackageManagerKind.DNF, PackageManagerKind.YUM):
        return f"sudo {kind} makecache -q"
    if kind == PackageManagerKind.PACMAN:
        return "sudo pacman -Sy --noconfirm"
    return "sudo zypper --non-interactive refresh"


def remove_command(
    packages: Sequence[str],
    kind: PackageManagerKind,
    purge: bool = False,
) -> str:
    """Non-interactive remove command; ``purge`` only changes apt."""
    if not packages:
        return ""
    pkgs = " ".join(packages)

    if kind == PackageManagerKind.APT:
        action = "purge" if purge else "remove"
        return f"sudo apt-get {action} -y {pkgs}"
    if kind in (PackageManagerKind.DNF, PackageManagerKind.YUM):
        return f"sudo {kind} remove -y -q {pkgs}"
    if kind == PackageManagerKind.PACMAN:
        return f"sudo pacman -R --noconfirm {pkgs}"
    return f"sudo zypper --non-interactive remove {pkgs}"


def is_installed_command(package: str, kind: PackageManagerKind) -> str:
    """Query whether one package is installed; exit 0 means yes.

    apt    → dpkg-query -W -f='${Status}' PKG | grep -q 'install ok installed'
    dnf    → rpm -q PKG   (yum, zypper likewise)
    pacman → pacman -Q PKG
    """
    pkg = shell_quote(package)
    if kind == PackageManagerKind.APT:
        return f"dpkg-query -W -f='${{Status}}' {pkg} 2>/dev/null | grep -q 'install ok installed'"
    if kind == PackageManagerKind.PACMAN:
        return f"pacman -Q {pkg} >/dev/null 2>&1"
    return f"rpm -q {pkg} >/dev/null 2>&1"


# ── /etc/os-release ─────────────────────────────────────────────

OS_RELEASE_COMMAND = "cat /etc/os-release 2>/dev/null"


def parse_os_release(text: str) -> dict[str, str]:
    """Parse KEY=value lines of /etc/os-release, unquoting values."""
    info: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        info[key.strip()] = value.strip().strip('"').strip("'")
    return info


def os_id_from_release(text: str) -> str:
    """The ``ID`` field of an os-release document ("" when absent)."""
    return parse_os_release(text).get("ID", "")
