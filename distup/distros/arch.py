# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import re
import subprocess
import typing

from distup.actions import pacman
from distup.common import action, dist, log, resolver, util
from distup.common.dist import DistributionId
from distup.upgrader import DistUpgrader, PackageManagerAdapter, UpgradeChannel, UpgradePlan

if typing.TYPE_CHECKING:
    from distup.context import Context


PACMAN_CONF = "/etc/pacman.conf"
PACMAN_MIRRORLIST = "/etc/pacman.d/mirrorlist"


def _normalize_kernel_version(kernel_version: str) -> str:
    # uname reports 6.9.7-arch1-1 for the linux package 6.9.7.arch1-1
    return re.sub(r"[^0-9A-Za-z]+", "-", kernel_version.strip())


class PacmanAdapter(PackageManagerAdapter):
    refresh_mirrors: bool
    clean_cache: bool

    def __init__(self, refresh_mirrors: bool = False, clean_cache: bool = False):
        self.refresh_mirrors = refresh_mirrors
        self.clean_cache = clean_cache

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(refresh_mirrors={self.refresh_mirrors!r}, clean_cache={self.clean_cache!r})"

    def refresh_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        # -Syy downloads the databases even if they look up to date
        return [util.Command(["pacman", "-Syy" if self.refresh_mirrors else "-Sy"])]

    def upgrade_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        return [util.Command(["pacman", "-Syu", "--noconfirm"])]

    def cleanup_commands(self, plan: UpgradePlan) -> typing.List[util.Command]:
        if not self.clean_cache:
            return []
        return [util.Command(["pacman", "-Sc", "--noconfirm"])]

    def resync_commands(self) -> typing.List[util.Command]:
        return [util.Command(["pacman", "-Sy"])]

    def is_upgrade_required(self, plan: UpgradePlan, runner: util.CommandRunner) -> bool:
        try:
            updates = runner.query(["pacman", "-Qu"])
        except subprocess.CalledProcessError as ex:
            # pacman -Qu exits with 1 when nothing is to be upgraded
            updates = ex.stdout or ""

        updates_list = [line for line in updates.splitlines() if line.strip()]
        if not updates_list:
            runner.writer.write("System is already up to date\n")
            return False

        runner.writer.write(f"{len(updates_list)} package(s) will be upgraded\n")
        for line in updates_list[:20]:
            runner.writer.write(f"  {line}\n")
        if len(updates_list) > 20:
            runner.writer.write(f"  ... and {len(updates_list) - 20} more\n")
        return True

    def is_reboot_recommended(self, plan: UpgradePlan, runner: util.CommandRunner) -> bool:
        try:
            running = runner.query(["uname", "-r"])
            installed = runner.query(["pacman", "-Q", "linux"]).split()
        except (OSError, subprocess.CalledProcessError) as ex:
            log.warn(f"Unable to compare the running and the installed kernel: {ex}")
            return True

        if len(installed) < 2:
            return True
        return _normalize_kernel_version(installed[1]) not in _normalize_kernel_version(running)


class ArchUpgrader(DistUpgrader):
    _channels = [
        UpgradeChannel(
            "rolling",
            "Upgrade all packages to the latest versions",
            resolver.FixedVersion("rolling"),
        ),
    ]

    def __init__(self, refresh_mirrors: bool = False, clean_cache: bool = False):
        self._adapter = PacmanAdapter(refresh_mirrors, clean_cache)

    @classmethod
    def create(cls, distro: dist.Distro, ctx: "Context") -> "DistUpgrader":
        return cls(refresh_mirrors=ctx.refresh_mirrors, clean_cache=ctx.clean_cache)

    @property
    def distribution(self) -> DistributionId:
        return DistributionId.ARCH

    @property
    def display_name(self) -> str:
        return "Arch Linux"

    def supports(self, distro: dist.Distro) -> bool:
        return isinstance(distro, dist.ArchLinux)

    @property
    def channels(self) -> typing.List[UpgradeChannel]:
        return self._channels

    @property
    def adapter(self) -> PackageManagerAdapter:
        return self._adapter

    @property
    def config_paths(self) -> typing.List[str]:
        return [PACMAN_CONF, PACMAN_MIRRORLIST]

    def _rewrite_actions(self, plan: UpgradePlan, ctx: "Context") -> typing.List[action.ActiveAction]:
        # Announcements of manual interventions should be read before the databases are refreshed
        return [pacman.ShowArchNews(ctx.runner, ctx.fetch)]

    def _post_cleanup_actions(self, plan: UpgradePlan, ctx: "Context") -> typing.List[action.ActiveAction]:
        return [
            pacman.ReportOrphanPackages(ctx.runner),
            pacman.ReportConfigurationChanges(ctx.runner),
        ]
