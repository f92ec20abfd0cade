# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import os
import typing

from distup.actions import repositories
from distup.common import action, dist, repos, resolver, util
from distup.common.dist import DistributionId
from distup.upgrader import DistUpgrader, PackageManagerAdapter, UpgradeChannel, UpgradePlan

if typing.TYPE_CHECKING:
    from distup.context import Context


ZYPP_REPOS_DIR = "/etc/zypp/repos.d"
LEAP_RELEASES_URL = "https://download.opensuse.org/distribution/leap/"
LEAP_RELEASES_PATTERN = r'href="\./(\d+\.\d+)/"'
# Leap 42.x is numbered above 15.x, but it's the legacy line
LEAP_LEGACY_EXCLUDE = r"^42\."


class ZypperAdapter(PackageManagerAdapter):
    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def _zypper(self, plan: typing.Optional[UpgradePlan], *args: str) -> util.Command:
        cmd = ["zypper", "--non-interactive"]
        if plan is not None and plan.channel == "leap":
            cmd.append(f"--releasever={plan.target_version}")
        return util.Command(cmd + list(args))

    def refresh_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [self._zypper(plan, "refresh")]

    def upgrade_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [self._zypper(plan, "dup", "--no-allow-vendor-change", "-y")]

    def cleanup_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [self._zypper(None, "clean", "--all")]

    def resync_commands(self) -> typing.List[util.Command]:
        return [self._zypper(None, "refresh")]


class OpenSuseUpgrader(DistUpgrader):
    _channels = [
        UpgradeChannel(
            "leap",
            "Latest openSUSE Leap release",
            resolver.MirrorVersion(LEAP_RELEASES_URL, LEAP_RELEASES_PATTERN, exclude=LEAP_LEGACY_EXCLUDE),
        ),
        UpgradeChannel(
            "tumbleweed",
            "Rolling release with the latest packages",
            resolver.FixedVersion("tumbleweed"),
            warning="Switching to Tumbleweed is a one-way trip, there is no supported way back to Leap.",
        ),
    ]

    def __init__(self, on_tumbleweed: bool = False):
        self._adapter = ZypperAdapter()
        self.on_tumbleweed = on_tumbleweed

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(on_tumbleweed={self.on_tumbleweed!r})"

    @classmethod
    def create(cls, distro: dist.Distro, ctx: "Context") -> "DistUpgrader":
        return cls(on_tumbleweed=isinstance(distro, dist.OpenSuseTumbleweed))

    @property
    def distribution(self) -> DistributionId:
        return DistributionId.OPENSUSE

    @property
    def display_name(self) -> str:
        return "openSUSE"

    def supports(self, distro: dist.Distro) -> bool:
        return isinstance(distro, (dist.OpenSuseLeap, dist.OpenSuseTumbleweed))

    @property
    def channels(self) -> typing.List[UpgradeChannel]:
        return self._channels

    @property
    def adapter(self) -> PackageManagerAdapter:
        return self._adapter

    @property
    def config_paths(self) -> typing.List[str]:
        return [ZYPP_REPOS_DIR]

    @property
    def mirror(self) -> typing.Optional[str]:
        return repos.OPENSUSE_MIRROR

    def repository_file(self, plan: UpgradePlan) -> typing.Optional[str]:
        return os.path.join(ZYPP_REPOS_DIR, f"distup-{plan.channel}.repo")

    def _rewrite_actions(self, plan: UpgradePlan, ctx: "Context") -> typing.List[action.ActiveAction]:
        # Tumbleweed repositories are already configured on Tumbleweed
        if self.on_tumbleweed and plan.channel == "tumbleweed":
            return []
        return [
            repositories.RewriteRepositories(
                ctx.backup,
                self.repository_file(plan),
                plan,
                ctx.runner,
                mirror=self.mirror,
                before_commands=[util.Command(["zypper", "modifyrepo", "--disable", "--all"])],
            ),
        ]
