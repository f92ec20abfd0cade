# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing

from distup.common import dist, repos, resolver, util
from distup.common.dist import DistributionId
from distup.upgrader import DistUpgrader, PackageManagerAdapter, UpgradeChannel, UpgradePlan


APT_SOURCES_LIST = "/etc/apt/sources.list"
APT_SOURCES_DIR = "/etc/apt/sources.list.d"

# Keep locally modified configuration files, take the maintainer's version of untouched ones
APT_KEEP_CONFIG_OPTIONS = [
    "-o", "Dpkg::Options::=--force-confdef",
    "-o", "Dpkg::Options::=--force-confold",
]
APT_NONINTERACTIVE_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class AptAdapter(PackageManagerAdapter):
    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def _update(self) -> util.Command:
        return util.Command(["apt-get", "update"])

    def _dist_upgrade(self) -> util.Command:
        return util.Command(
            ["apt-get", "dist-upgrade", "-y"] + APT_KEEP_CONFIG_OPTIONS,
            env=APT_NONINTERACTIVE_ENV,
        )

    def refresh_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [self._update()]

    def upgrade_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [self._dist_upgrade()]

    def cleanup_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [
            util.Command(["apt-get", "autoremove", "-y"], env=APT_NONINTERACTIVE_ENV),
            util.Command(["apt-get", "clean"]),
        ]

    def resync_commands(self) -> typing.List[util.Command]:
        return [self._update()]


class DebianUpgrader(DistUpgrader):
    _channels = [
        UpgradeChannel(
            "stable",
            "Current stable release, recommended for servers",
            resolver.FixedVersion("stable"),
        ),
        UpgradeChannel(
            "testing",
            "Next stable release in preparation",
            resolver.FixedVersion("testing"),
            warning="Testing receives security updates later than stable.",
        ),
        UpgradeChannel(
            "sid",
            "Unstable development branch",
            resolver.FixedVersion("sid"),
            warning="Sid is unstable and may break at any time. It's not recommended for production systems.",
        ),
    ]

    def __init__(self):
        self._adapter = AptAdapter()

    @property
    def distribution(self) -> DistributionId:
        return DistributionId.DEBIAN

    @property
    def display_name(self) -> str:
        return "Debian"

    def supports(self, distro: dist.Distro) -> bool:
        return isinstance(distro, dist.Debian)

    @property
    def channels(self) -> typing.List[UpgradeChannel]:
        return self._channels

    @property
    def adapter(self) -> PackageManagerAdapter:
        return self._adapter

    @property
    def config_paths(self) -> typing.List[str]:
        return [APT_SOURCES_LIST, APT_SOURCES_DIR]

    @property
    def mirror(self) -> typing.Optional[str]:
        return repos.DEBIAN_MIRROR

    def repository_file(self, plan: UpgradePlan) -> typing.Optional[str]:
        return APT_SOURCES_LIST
