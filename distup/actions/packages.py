# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing

from distup.common import action, log, util

if typing.TYPE_CHECKING:
    from distup.upgrader import PackageManagerAdapter, UpgradePlan


class PackageManagerAction(action.ActiveAction):
    adapter: "PackageManagerAdapter"
    plan: "UpgradePlan"
    runner: util.CommandRunner

    def __init__(self, adapter: "PackageManagerAdapter", plan: "UpgradePlan", runner: util.CommandRunner):
        self.adapter = adapter
        self.plan = plan
        self.runner = runner

    def _get_commands(self) -> typing.List[util.Command]:
        raise NotImplementedError("Not implemented commands getter")

    def _prepare_action(self) -> action.ActionResult:
        commands = self._get_commands()
        if not commands:
            return action.ActionResult(action.ActionState.SKIPPED, "nothing to do")
        for command in commands:
            self.runner.run(command)
        return action.ActionResult()

    def _revert_action(self) -> action.ActionResult:
        # Packages are not downgraded, the configuration is restored by the backup action
        return action.ActionResult()


class RefreshPackageIndex(PackageManagerAction):
    def __init__(self, adapter: "PackageManagerAdapter", plan: "UpgradePlan", runner: util.CommandRunner):
        super().__init__(adapter, plan, runner)
        self.name = "refresh package index"
        self.description = "Download package lists of the configured repositories"

    def _get_commands(self) -> typing.List[util.Command]:
        return self.adapter.refresh_commands(self.plan)


class UpgradeDistribution(PackageManagerAction):
    def __init__(self, adapter: "PackageManagerAdapter", plan: "UpgradePlan", runner: util.CommandRunner):
        super().__init__(adapter, plan, runner)
        self.name = "upgrade distribution"
        self.description = f"Upgrade the system to {plan.channel} {plan.target_version}"

    def _is_required(self) -> bool:
        return self.adapter.is_upgrade_required(self.plan, self.runner)

    def _get_commands(self) -> typing.List[util.Command]:
        return self.adapter.upgrade_commands(self.plan)


class CleanupPackages(PackageManagerAction):
    def __init__(self, adapter: "PackageManagerAdapter", plan: "UpgradePlan", runner: util.CommandRunner):
        super().__init__(adapter, plan, runner)
        self.name = "clean up packages"
        self.description = "Remove packages which are not needed anymore and clean the package cache"

    def _get_commands(self) -> typing.List[util.Command]:
        return self.adapter.cleanup_commands(self.plan)


class RepeatReleaseUpgrade(action.ActiveAction):
    """
    Keep upgrading while the release upgrader reports one more release,
    so a single run reaches the latest one of the channel.
    """
    check_command: util.Command
    upgrade_command: util.Command
    max_iterations: int
    iterations: int

    def __init__(
        self,
        check_command: util.Command,
        upgrade_command: util.Command,
        runner: util.CommandRunner,
        max_iterations: int = 5,
    ):
        self.name = "repeat release upgrade"
        self.description = "Continue upgrading while a newer release is available"
        self.check_command = check_command
        self.upgrade_command = upgrade_command
        self.runner = runner
        self.max_iterations = max_iterations
        self.iterations = 0

    def _prepare_action(self) -> action.ActionResult:
        if self.runner.dry_run:
            self.runner.writer.write(f"Would repeat {self.upgrade_command} while {self.check_command} reports a new release\n")
            return action.ActionResult()

        while self.iterations < self.max_iterations:
            if self.runner.call(self.check_command) != 0:
                return action.ActionResult()
            self.iterations += 1
            self.runner.writer.write("Another release is available, continuing the upgrade...\n")
            exit_code = self.runner.call(self.upgrade_command)
            if exit_code != 0:
                # The previous release upgrade succeeded, its configuration stays
                log.warn(f"Chained release upgrade exited with {exit_code}, stopping")
                return action.ActionResult(info=f"chain stopped, {self.upgrade_command} exited with {exit_code}")

        return action.ActionResult(info=f"stopped after {self.max_iterations} additional upgrades")

    def _revert_action(self) -> action.ActionResult:
        return action.ActionResult()
