# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import platform
import subprocess
import typing

from distup.common import dist, log, repos, resolver, util
from distup.common.dist import DistributionId
from distup.upgrader import DistUpgrader, PackageManagerAdapter, UpgradeChannel, UpgradePlan


APK_REPOSITORIES = "/etc/apk/repositories"
LATEST_RELEASES_PATTERN = r"version: (\d+\.\d+)"


def get_arch() -> str:
    try:
        return subprocess.check_output(["apk", "--print-arch"], universal_newlines=True).strip()
    except (OSError, subprocess.CalledProcessError) as ex:
        log.debug(f"Unable to get the architecture from apk: {ex}")
        return platform.machine()


def get_latest_releases_url(mirror: str = repos.ALPINE_MIRROR) -> str:
    return f"{mirror}/latest-stable/releases/{get_arch()}/latest-releases.yaml"


class ApkAdapter(PackageManagerAdapter):
    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def refresh_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [util.Command(["apk", "update"])]

    def upgrade_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [
            util.Command(["apk", "upgrade", "--available"]),
            util.Command(["sync"]),
        ]

    def cleanup_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return []

    def resync_commands(self) -> typing.List[util.Command]:
        return [util.Command(["apk", "update"])]


class AlpineUpgrader(DistUpgrader):
    _channels = [
        UpgradeChannel(
            "stable",
            "Latest stable Alpine release",
            resolver.MirrorVersion(get_latest_releases_url, LATEST_RELEASES_PATTERN),
        ),
        UpgradeChannel(
            "edge",
            "Rolling development branch with the latest packages",
            resolver.FixedVersion("edge"),
            warning="Edge is a rolling release and may have occasional instability.",
        ),
    ]

    def __init__(self):
        self._adapter = ApkAdapter()

    @property
    def distribution(self) -> DistributionId:
        return DistributionId.ALPINE

    @property
    def display_name(self) -> str:
        return "Alpine Linux"

    def supports(self, distro: dist.Distro) -> bool:
        return isinstance(distro, dist.Alpine)

    @property
    def channels(self) -> typing.List[UpgradeChannel]:
        return self._channels

    @property
    def adapter(self) -> PackageManagerAdapter:
        return self._adapter

    @property
    def config_paths(self) -> typing.List[str]:
        return [APK_REPOSITORIES]

    @property
    def mirror(self) -> typing.Optional[str]:
        return repos.ALPINE_MIRROR

    def get_current_version(self, distro: dist.Distro) -> str:
        # Releases are compared by branch, 3.20.3 is up to date with 3.20
        return distro.major_version

    def repository_file(self, plan: UpgradePlan) -> typing.Optional[str]:
        return APK_REPOSITORIES
