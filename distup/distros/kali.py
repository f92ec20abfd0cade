# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing

from distup.common import dist, repos, resolver
from distup.common.dist import DistributionId
from distup.distros.debian import APT_SOURCES_DIR, APT_SOURCES_LIST, AptAdapter
from distup.upgrader import DistUpgrader, PackageManagerAdapter, UpgradeChannel, UpgradePlan


class KaliUpgrader(DistUpgrader):
    _channels = [
        UpgradeChannel(
            "rolling",
            "Kali rolling release, the default branch",
            resolver.FixedVersion("kali-rolling"),
        ),
        UpgradeChannel(
            "bleeding-edge",
            "Rolling release with packages built directly from upstream",
            resolver.FixedVersion("kali-bleeding-edge"),
            warning="Bleeding-edge packages are automatically built and barely tested.",
        ),
    ]

    def __init__(self):
        self._adapter = AptAdapter()

    @property
    def distribution(self) -> DistributionId:
        return DistributionId.KALI

    @property
    def display_name(self) -> str:
        return "Kali Linux"

    def supports(self, distro: dist.Distro) -> bool:
        return isinstance(distro, dist.Kali)

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
        return repos.KALI_MIRROR

    def repository_file(self, plan: UpgradePlan) -> typing.Optional[str]:
        return APT_SOURCES_LIST
