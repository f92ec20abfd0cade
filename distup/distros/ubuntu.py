# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing

from distup.actions import packages, repositories
from distup.common import action, dist, resolver, util
from distup.common.dist import DistributionId
from distup.distros.debian import APT_NONINTERACTIVE_ENV, APT_SOURCES_DIR, APT_SOURCES_LIST, AptAdapter
from distup.upgrader import DistUpgrader, PackageManagerAdapter, UpgradeChannel, UpgradePlan

if typing.TYPE_CHECKING:
    from distup.context import Context


UBUNTU_META_RELEASE_LTS_URL = "https://changelogs.ubuntu.com/meta-release-lts"
UBUNTU_META_RELEASE_URL = "https://changelogs.ubuntu.com/meta-release"
RELEASE_UPGRADES_CONFIG = "/etc/update-manager/release-upgrades"

META_RELEASE_VERSION_PATTERN = r"^Version: (\d+\.\d+)"

DO_RELEASE_UPGRADE = ["do-release-upgrade", "-f", "DistUpgradeViewNonInteractive"]

# Prompt value of release-upgrades for each channel
_release_upgrade_prompts = {
    "lts": "lts",
    "release": "normal",
}


class UbuntuAdapter(AptAdapter):
    def upgrade_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [
            self._dist_upgrade(),
            util.Command(["apt-get", "install", "-y", "update-manager-core"], env=APT_NONINTERACTIVE_ENV),
            util.Command(DO_RELEASE_UPGRADE),
        ]


class UbuntuUpgrader(DistUpgrader):
    _channels = [
        UpgradeChannel(
            "lts",
            "Long term support releases only, recommended",
            resolver.MirrorVersion(UBUNTU_META_RELEASE_LTS_URL, META_RELEASE_VERSION_PATTERN),
        ),
        UpgradeChannel(
            "release",
            "Every release, including interim ones with 9 months of support",
            resolver.MirrorVersion(UBUNTU_META_RELEASE_URL, META_RELEASE_VERSION_PATTERN),
            warning="Interim releases are supported for 9 months only.",
        ),
    ]

    def __init__(self):
        self._adapter = UbuntuAdapter()

    @property
    def distribution(self) -> DistributionId:
        return DistributionId.UBUNTU

    @property
    def display_name(self) -> str:
        return "Ubuntu"

    def supports(self, distro: dist.Distro) -> bool:
        return isinstance(distro, dist.Ubuntu)

    @property
    def channels(self) -> typing.List[UpgradeChannel]:
        return self._channels

    @property
    def adapter(self) -> PackageManagerAdapter:
        return self._adapter

    @property
    def config_paths(self) -> typing.List[str]:
        return [APT_SOURCES_LIST, APT_SOURCES_DIR, RELEASE_UPGRADES_CONFIG]

    def _rewrite_actions(self, plan: UpgradePlan, ctx: "Context") -> typing.List[action.ActiveAction]:
        # do-release-upgrade switches the repositories itself, only the kind of releases it looks for is set
        return [
            repositories.SetConfigVariable(
                RELEASE_UPGRADES_CONFIG,
                "DEFAULT",
                "Prompt",
                _release_upgrade_prompts[plan.channel],
                ctx.runner,
                config_backup=ctx.backup,
            ),
        ]

    def _post_upgrade_actions(self, plan: UpgradePlan, ctx: "Context") -> typing.List[action.ActiveAction]:
        if plan.channel != "release":
            return []
        return [
            packages.RepeatReleaseUpgrade(
                util.Command(DO_RELEASE_UPGRADE + ["-c"], mutating=False),
                util.Command(DO_RELEASE_UPGRADE),
                ctx.runner,
            ),
        ]
