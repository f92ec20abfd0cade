# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing

from distup.actions import leapp
from distup.common import action, dist, resolver, util, version
from distup.common.dist import DistributionId
from distup.upgrader import DistUpgrader, PackageManagerAdapter, UpgradeChannel, UpgradePlan

if typing.TYPE_CHECKING:
    from distup.context import Context


YUM_REPOS_DIR = "/etc/yum.repos.d"
ELEVATE_RELEASE_URL = "https://repo.almalinux.org/elevate/elevate-release-latest-el{major}.noarch.rpm"

_leapp_data_packages = {
    "rocky": "leapp-data-rocky",
    "almalinux": "leapp-data-almalinux",
}


class LeappAdapter(PackageManagerAdapter):
    """
    Prepares the ELevate tooling. The upgrade itself is performed by leapp
    during the next boot, see the leapp actions.
    """
    leapp_data_package: str

    def __init__(self, leapp_data_package: str):
        self.leapp_data_package = leapp_data_package

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(leapp_data_package={self.leapp_data_package!r})"

    def refresh_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [util.Command(["dnf", "makecache", "--refresh"])]

    def upgrade_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        major = version.DistroVersion(plan.current_version).major
        return [
            util.Command(["dnf", "upgrade", "--refresh", "-y"]),
            util.Command(["dnf", "install", "-y", ELEVATE_RELEASE_URL.format(major=major)]),
            util.Command(["dnf", "install", "-y", "leapp-upgrade", self.leapp_data_package]),
        ]

    def cleanup_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return []

    def resync_commands(self) -> typing.List[util.Command]:
        return [
            util.Command(["dnf", "clean", "all"]),
            util.Command(["dnf", "makecache"]),
        ]

    def is_reboot_recommended(self, plan: UpgradePlan, runner: util.CommandRunner) -> bool:
        # leapp finishes the upgrade in a special boot entry
        return plan.channel == "upgrade"


class RhelCloneUpgrader(DistUpgrader):
    _channels = [
        UpgradeChannel(
            "check",
            "Pre-upgrade assessment only, recommended first",
            resolver.NextMajorVersion(),
        ),
        UpgradeChannel(
            "upgrade",
            "In-place upgrade to the next major version with leapp",
            resolver.NextMajorVersion(),
            warning="Major version upgrades are complex. Review the leapp report and have a full backup.",
        ),
    ]

    def __init__(self, os_id: str = "rocky"):
        self.os_id = os_id
        self._adapter = LeappAdapter(_leapp_data_packages.get(os_id, f"leapp-data-{os_id}"))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(os_id={self.os_id!r})"

    @classmethod
    def create(cls, distro: dist.Distro, ctx: "Context") -> "DistUpgrader":
        return cls(os_id=distro.os_id or "rocky")

    @property
    def distribution(self) -> DistributionId:
        return DistributionId.RHEL_CLONE

    @property
    def display_name(self) -> str:
        return "Rocky Linux / AlmaLinux"

    def supports(self, distro: dist.Distro) -> bool:
        return isinstance(distro, (dist.RockyLinux, dist.AlmaLinux))

    @property
    def channels(self) -> typing.List[UpgradeChannel]:
        return self._channels

    @property
    def adapter(self) -> PackageManagerAdapter:
        return self._adapter

    @property
    def config_paths(self) -> typing.List[str]:
        return [YUM_REPOS_DIR]

    def _post_upgrade_actions(self, plan: UpgradePlan, ctx: "Context") -> typing.List[action.ActiveAction]:
        res: typing.List[action.ActiveAction] = [leapp.RunLeappPreupgrade(ctx.runner)]
        if plan.channel == "upgrade":
            res.append(leapp.RunLeappUpgrade(ctx.runner, ctx.confirmation))
        return res
