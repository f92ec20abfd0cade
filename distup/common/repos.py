# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing

from . import version
from .dist import DistributionId


ALPINE_MIRROR = "https://dl-cdn.alpinelinux.org/alpine"
DEBIAN_MIRROR = "http://deb.debian.org/debian"
DEBIAN_SECURITY_MIRROR = "http://security.debian.org/debian-security"
KALI_MIRROR = "http://http.kali.org/kali"
OPENSUSE_MIRROR = "https://download.opensuse.org"

APT_COMPONENTS = "main contrib non-free non-free-firmware"

# Leap releases starting from 15.3 are built from SLE binaries and have
# the backports and SLE update repositories
_OPENSUSE_FIRST_SLE_BASED_LEAP = version.DistroVersion("15.3")


def _render_alpine(channel: str, target_version: str, mirror: typing.Optional[str]) -> str:
    mirror = mirror or ALPINE_MIRROR
    if channel == "edge":
        branch = "edge"
        repos = ["main", "community", "testing"]
    elif channel == "stable":
        branch = "v" + target_version.lstrip("v")
        repos = ["main", "community"]
    else:
        raise ValueError(f"Unknown Alpine channel {channel!r}")

    return "".join(f"{mirror}/{branch}/{repo}\n" for repo in repos)


def _render_debian(channel: str, target_version: str, mirror: typing.Optional[str]) -> str:
    mirror = mirror or DEBIAN_MIRROR
    if channel not in ("stable", "testing", "sid"):
        raise ValueError(f"Unknown Debian channel {channel!r}")

    lines = [f"# Debian {channel}", f"deb {mirror} {channel} {APT_COMPONENTS}"]
    # Sid has neither updates nor security suites
    if channel != "sid":
        lines.append(f"deb {mirror} {channel}-updates {APT_COMPONENTS}")
        lines.append(f"deb {DEBIAN_SECURITY_MIRROR} {channel}-security {APT_COMPONENTS}")
    return "\n".join(lines) + "\n"


def _render_kali(channel: str, target_version: str, mirror: typing.Optional[str]) -> str:
    mirror = mirror or KALI_MIRROR
    if channel not in ("rolling", "bleeding-edge"):
        raise ValueError(f"Unknown Kali channel {channel!r}")

    lines = [
        "# Kali Rolling Repository",
        f"deb {mirror} kali-rolling {APT_COMPONENTS}",
    ]
    if channel == "bleeding-edge":
        lines += [
            "",
            "# Kali Bleeding Edge Repository (experimental)",
            f"deb {mirror} kali-bleeding-edge {APT_COMPONENTS}",
        ]
    return "\n".join(lines) + "\n"


def _zypper_repo_section(alias: str, name: str, url: str) -> str:
    return (
        f"[{alias}]\n"
        f"name={name}\n"
        "enabled=1\n"
        "autorefresh=1\n"
        f"baseurl={url}\n"
        "type=rpm-md\n"
        "keeppackages=0\n"
    )


def _render_opensuse(channel: str, target_version: str, mirror: typing.Optional[str]) -> str:
    mirror = mirror or OPENSUSE_MIRROR
    if channel == "tumbleweed":
        sections = [
            ("repo-oss", "openSUSE-Tumbleweed-Oss", f"{mirror}/tumbleweed/repo/oss/"),
            ("repo-non-oss", "openSUSE-Tumbleweed-Non-Oss", f"{mirror}/tumbleweed/repo/non-oss/"),
            ("repo-update", "openSUSE-Tumbleweed-Update", f"{mirror}/update/tumbleweed/"),
        ]
    elif channel == "leap":
        leap = version.DistroVersion(target_version)
        sections = [
            ("repo-oss", f"openSUSE-Leap-{leap}-Oss", f"{mirror}/distribution/leap/{leap}/repo/oss/"),
            ("repo-non-oss", f"openSUSE-Leap-{leap}-Non-Oss", f"{mirror}/distribution/leap/{leap}/repo/non-oss/"),
            ("repo-update", f"openSUSE-Leap-{leap}-Update", f"{mirror}/update/leap/{leap}/oss/"),
        ]
        if leap >= _OPENSUSE_FIRST_SLE_BASED_LEAP:
            sections += [
                ("repo-backports-update", f"openSUSE-Leap-{leap}-Backports-Update", f"{mirror}/update/leap/{leap}/backports/"),
                ("repo-sle-update", f"openSUSE-Leap-{leap}-SLE-Update", f"{mirror}/update/leap/{leap}/sle/"),
            ]
    else:
        raise ValueError(f"Unknown openSUSE channel {channel!r}")

    return "\n".join(_zypper_repo_section(*section) for section in sections)


# Distributions without renderers switch repositories by their upgrade helpers
_renderers: typing.Dict[DistributionId, typing.Callable[[str, str, typing.Optional[str]], str]] = {
    DistributionId.ALPINE: _render_alpine,
    DistributionId.DEBIAN: _render_debian,
    DistributionId.KALI: _render_kali,
    DistributionId.OPENSUSE: _render_opensuse,
}


def has_renderer(distribution: typing.Union[DistributionId, str]) -> bool:
    return DistributionId(distribution) in _renderers


def render(
    distribution: typing.Union[DistributionId, str],
    channel: str,
    target_version: str,
    mirror: typing.Optional[str] = None,
) -> typing.Optional[str]:
    """
    Render the repository configuration of the target release.

    The function has no side effects. It returns None for distributions
    which don't need the repository configuration to be rewritten and
    raises ValueError for an unknown channel.
    """
    renderer = _renderers.get(DistributionId(distribution))
    if renderer is None:
        return None
    return renderer(channel, target_version, mirror)
