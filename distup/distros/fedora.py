# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing

from distup.common import dist, resolver, util
from distup.common.dist import DistributionId
from distup.upgrader import DistUpgrader, PackageManagerAdapter, UpgradeChannel, UpgradePlan


FEDORA_RELEASES_URL = "https://dl.fedoraproject.org/pub/fedora/linux/releases/"
RELEASES_PATTERN = r'href="(\d+)/"'
YUM_REPOS_DIR = "/etc/yum.repos.d"


class DnfSystemUpgradeAdapter(PackageManagerAdapter):
    """The upgrade is downloaded by the system-upgrade plugin and installed during the reboot."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def refresh_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [util.Command(["dnf", "makecache", "--refresh"])]

    def upgrade_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [
            util.Command(["dnf", "upgrade", "--refresh", "-y"]),
            util.Command(["dnf", "install", "-y", "dnf-plugin-system-upgrade"]),
            util.Command(["dnf", "system-upgrade", "download", f"--releasever={plan.target_version}", "-y"]),
        ]

    def cleanup_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        # The cache holds the downloaded transaction, it's needed by the reboot
        return []

    def resync_commands(self) -> typing.List[util.Command]:
        return [
            util.Command(["dnf", "clean", "all"]),
            util.Command(["dnf", "makecache"]),
        ]

    def reboot_command(self, plan: UpgradePlan) -> util.Command:
        return util.Command(["dnf", "system-upgrade", "reboot"])


class FedoraUpgrader(DistUpgrader):
    _channels = [
        UpgradeChannel(
            "stable",
            "Latest stable Fedora release",
            resolver.MirrorVersion(FEDORA_RELEASES_URL, RELEASES_PATTERN),
        ),
        UpgradeChannel(
            "rawhide",
            "Development branch of the next release",
            resolver.FixedVersion("rawhide"),
            warning="Rawhide is a development branch and may be unstable.",
        ),
    ]

    def __init__(self):
        self._adapter = DnfSystemUpgradeAdapter()

    @property
    def distribution(self) -> DistributionId:
        return DistributionId.FEDORA

    @property
    def display_name(self) -> str:
        return "Fedora"

    def supports(self, distro: dist.Distro) -> bool:
        return isinstance(distro, dist.Fedora)

    @property
    def channels(self) -> typing.List[UpgradeChannel]:
        return self._channels

    @property
    def adapter(self) -> PackageManagerAdapter:
        return self._adapter

    @property
    def config_paths(self) -> typing.List[str]:
        return [YUM_REPOS_DIR]
