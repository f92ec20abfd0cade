# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing
from abc import ABC, abstractmethod

from distup.actions import checks, hooks, packages, repositories
from distup.common import action, dist, repos, resolver, util
from distup.common import hooks as hookdirs
from distup.common.dist import DistributionId
from distup.state import State

if typing.TYPE_CHECKING:
    from distup.context import Context


class UpgradeChannel:
    name: str
    description: str
    version_source: resolver.VersionSource
    warning: typing.Optional[str]

    def __init__(
        self,
        name: str,
        description: str,
        version_source: resolver.VersionSource,
        warning: typing.Optional[str] = None,
    ):
        self.name = name
        self.description = description
        self.version_source = version_source
        self.warning = warning

    def __repr__(self) -> str:
        attrs = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        return f"{self.__class__.__name__}({attrs})"


class UpgradePlan(typing.NamedTuple):
    distribution: DistributionId
    channel: str
    current_version: str
    target_version: str
    dry_run: bool


class PackageManagerAdapter(ABC):
    """Commands of the native package manager for each step of the upgrade."""

    @abstractmethod
    def refresh_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        pass

    @abstractmethod
    def upgrade_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        pass

    @abstractmethod
    def cleanup_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        pass

    @abstractmethod
    def resync_commands(self) -> typing.List[util.Command]:
        """Bring the package index in line with the restored configuration."""
        pass

    def is_upgrade_required(self, plan: UpgradePlan, runner: util.CommandRunner) -> bool:
        return True

    def reboot_command(self, plan: UpgradePlan) -> util.Command:
        return util.Command(["reboot"])

    def is_reboot_recommended(self, plan: UpgradePlan, runner: util.CommandRunner) -> bool:
        return True


class DistUpgrader(ABC):
    """
    Everything distribution specific: how to recognize the distribution,
    which channels it has, what to back up and which actions to perform.
    """

    @property
    @abstractmethod
    def distribution(self) -> DistributionId:
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        pass

    @abstractmethod
    def supports(self, distro: dist.Distro) -> bool:
        pass

    @property
    @abstractmethod
    def channels(self) -> typing.List[UpgradeChannel]:
        pass

    @property
    @abstractmethod
    def adapter(self) -> PackageManagerAdapter:
        pass

    @property
    @abstractmethod
    def config_paths(self) -> typing.List[str]:
        """Configuration to back up before any change."""
        pass

    @property
    def mirror(self) -> typing.Optional[str]:
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def __str__(self) -> str:
        return self.display_name

    @classmethod
    def create(cls, distro: dist.Distro, ctx: "Context") -> "DistUpgrader":
        """Instantiate the upgrader for the detected system and the run options."""
        return cls()

    def get_channel(self, name: str) -> typing.Optional[UpgradeChannel]:
        for channel in self.channels:
            if channel.name == name:
                return channel
        return None

    def get_channel_names(self) -> typing.List[str]:
        return [channel.name for channel in self.channels]

    def get_current_version(self, distro: dist.Distro) -> str:
        return distro.version

    def repository_file(self, plan: UpgradePlan) -> typing.Optional[str]:
        """The live repository configuration replaced with the rendered one."""
        return None

    def is_upgrade_needed(self, plan: UpgradePlan, channel: UpgradeChannel) -> bool:
        return resolver.is_upgrade_needed(channel.version_source, plan.current_version, plan.target_version)

    def get_check_actions(self, ctx: "Context") -> typing.List[action.CheckAction]:
        res: typing.List[action.CheckAction] = []
        if not ctx.skip_disk_check:
            res.append(checks.AssertMinFreeDiskSpace({"/": ctx.min_disk_space}))
        if not ctx.skip_network_check:
            res.append(checks.AssertNetworkReachable(ctx.network_hosts))
        if not ctx.skip_battery_check:
            res.append(checks.AssertBatteryCharged(ctx.min_battery))
        if not ctx.skip_mirror_check and self.mirror is not None:
            res.append(checks.AssertMirrorReachable(self.mirror))
        return res

    def construct_actions(self, plan: UpgradePlan, ctx: "Context") -> typing.Dict[str, typing.List[action.ActiveAction]]:
        return {
            State.BACKING_UP.value: [
                repositories.BackupConfiguration(ctx.backup, self.config_paths, ctx.runner, self.adapter),
            ],
            State.RUNNING_PRE_HOOKS.value: [
                hooks.RunHooks("pre", hookdirs.get_hook_directories("pre", ctx.hooks_dir, ctx.sudo_user), ctx.runner),
            ],
            State.REWRITING.value: self._rewrite_actions(plan, ctx),
            State.REFRESHING.value: [
                packages.RefreshPackageIndex(self.adapter, plan, ctx.runner),
            ],
            State.UPGRADING.value: [
                packages.UpgradeDistribution(self.adapter, plan, ctx.runner),
            ] + self._post_upgrade_actions(plan, ctx),
            State.CLEANING_UP.value: [
                packages.CleanupPackages(self.adapter, plan, ctx.runner),
            ] + self._post_cleanup_actions(plan, ctx),
            State.RUNNING_POST_HOOKS.value: [
                hooks.RunHooks("post", hookdirs.get_hook_directories("post", ctx.hooks_dir, ctx.sudo_user), ctx.runner),
            ],
        }

    def _rewrite_actions(self, plan: UpgradePlan, ctx: "Context") -> typing.List[action.ActiveAction]:
        repository_file = self.repository_file(plan)
        if repository_file is None or not repos.has_renderer(self.distribution):
            return []
        return [
            repositories.RewriteRepositories(
                ctx.backup,
                repository_file,
                plan,
                ctx.runner,
                mirror=self.mirror,
            ),
        ]

    def _post_upgrade_actions(self, plan: UpgradePlan, ctx: "Context") -> typing.List[action.ActiveAction]:
        return []

    def _post_cleanup_actions(self, plan: UpgradePlan, ctx: "Context") -> typing.List[action.ActiveAction]:
        return []

