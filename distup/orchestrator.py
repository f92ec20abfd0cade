# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import os
import subprocess
import sys
import typing

from distup import messages
from distup.actions import hooks as hook_actions
from distup.common import action, backup, dist, files, hooks, log, prompt, resolver, snapshot
from distup.context import Context
from distup.state import State
from distup.upgrader import DistUpgrader, UpgradeChannel, UpgradePlan


class PreconditionError(Exception):
    """The upgrade can't be started: wrong distribution, no privileges or an invalid channel."""
    pass


class PreflightFailure(Exception):
    """A blocking pre-flight check failed or the user declined to continue after a warning."""
    pass


class OrchestrationResult:
    state: State
    history: typing.List[State]
    plan: typing.Optional[UpgradePlan]
    hook_summaries: typing.Dict[str, hooks.HookSummary]
    snapshot: typing.Optional[snapshot.SnapshotHandle]
    backups: typing.List[backup.ConfigBackupRecord]
    cancelled: bool
    error: typing.Optional[str]

    def __init__(
        self,
        state: State,
        history: typing.List[State],
        plan: typing.Optional[UpgradePlan] = None,
        hook_summaries: typing.Optional[typing.Dict[str, hooks.HookSummary]] = None,
        snapshot: typing.Optional[snapshot.SnapshotHandle] = None,
        backups: typing.Optional[typing.List[backup.ConfigBackupRecord]] = None,
        cancelled: bool = False,
        error: typing.Optional[str] = None,
    ):
        self.state = state
        self.history = history
        self.plan = plan
        self.hook_summaries = hook_summaries if hook_summaries is not None else {}
        self.snapshot = snapshot
        self.backups = backups if backups is not None else []
        self.cancelled = cancelled
        self.error = error

    def __repr__(self) -> str:
        attrs = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        return f"{self.__class__.__name__}({attrs})"

    @property
    def exit_code(self) -> int:
        return 0 if self.state is State.COMPLETED else 1


def printerr(msg: str, logit: bool = True) -> None:
    print(f"ERROR: {msg}", file=sys.stderr)
    if logit:
        log.err(msg)


class StateTracker(action.FlowTracker):
    """Turns stages of the actions flow into orchestrator states."""

    def __init__(self, orchestrator: "Orchestrator"):
        self.orchestrator = orchestrator

    def __call__(self, stage: str, finished: bool = False) -> None:
        if not finished:
            self.orchestrator.enter(State.from_stage(stage))


class Orchestrator:
    """
    Drives one upgrade run through the states from detection to completion.

    Everything before the backup only reads the system. The backup and the
    following steps run as an actions flow, a failure there reverts the
    performed actions, which restores the configuration from the backup.
    """
    upgrader: DistUpgrader
    distro: dist.Distro
    ctx: Context
    channel_name: typing.Optional[str]
    state: State
    history: typing.List[State]

    def __init__(
        self,
        upgrader: DistUpgrader,
        distro: dist.Distro,
        ctx: Context,
        channel_name: typing.Optional[str] = None,
    ):
        self.upgrader = upgrader
        self.distro = distro
        self.ctx = ctx
        self.channel_name = channel_name
        self.state = State.INIT
        self.history = [State.INIT]
        self.plan: typing.Optional[UpgradePlan] = None
        self.snapshot: typing.Optional[snapshot.SnapshotHandle] = None
        self.hook_summaries: typing.Dict[str, hooks.HookSummary] = {}
        self._error: typing.Optional[str] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(upgrader={self.upgrader!r}, distro={self.distro!r}, state={self.state!r})"

    def enter(self, state: State) -> None:
        log.info(f"Entering state {state}")
        self.state = state
        self.history.append(state)

    def _result(self, cancelled: bool = False, error: typing.Optional[str] = None) -> OrchestrationResult:
        return OrchestrationResult(
            self.state,
            list(self.history),
            plan=self.plan,
            hook_summaries=dict(self.hook_summaries),
            snapshot=self.snapshot,
            backups=list(self.ctx.backup.records),
            cancelled=cancelled,
            error=error,
        )

    def _complete(self, cancelled: bool = False) -> OrchestrationResult:
        self.enter(State.COMPLETED)
        return self._result(cancelled=cancelled)

    def _abort(self, error: str) -> OrchestrationResult:
        printerr(error)
        self.enter(State.ABORTED)
        return self._result(error=error)

    def run(self) -> OrchestrationResult:
        try:
            self.enter(State.DETECTING)
            channel = self._select_channel()
            if channel is None:
                self.ctx.write("Upgrade cancelled by the user\n")
                return self._complete(cancelled=True)

            self.plan = self._make_plan(channel)
            if not self.upgrader.is_upgrade_needed(self.plan, channel):
                self.ctx.write(messages.ALREADY_LATEST_MESSAGE.format(
                    distro=self.upgrader.display_name,
                    channel=channel.name,
                    current_version=self.plan.current_version,
                ))
                return self._complete()

            self.enter(State.PREFLIGHT_CHECKING)
            self._run_preflight_checks()

            stages = self.upgrader.construct_actions(self.plan, self.ctx)
            if not self._confirm_plan(channel, stages):
                self.ctx.write("Upgrade cancelled by the user\n")
                return self._complete(cancelled=True)

            self.enter(State.SNAPSHOT_PROMPTING)
            self._offer_snapshot()
        except (PreconditionError, PreflightFailure, resolver.ResolutionError) as ex:
            return self._abort(str(ex))

        if not self._run_actions(stages):
            return self._result(error=self._error)

        result = self._complete()
        self._finish()
        return result

    def _select_channel(self) -> typing.Optional[UpgradeChannel]:
        if self.ctx.require_root and os.geteuid() != 0:
            raise PreconditionError("This tool must be run as root, use sudo")

        if not self.upgrader.supports(self.distro):
            raise PreconditionError(f"Detected {self.distro}, but the upgrader is for {self.upgrader.display_name}")

        if self.channel_name is not None:
            channel = self.upgrader.get_channel(self.channel_name)
            if channel is None:
                raise PreconditionError(
                    f"Unknown channel {self.channel_name!r}, available: {', '.join(self.upgrader.get_channel_names())}"
                )
            return channel

        options = [(channel.name, channel.description) for channel in self.upgrader.channels]
        try:
            name = self.ctx.confirmation.choose(f"Select the {self.upgrader.display_name} upgrade channel:", options)
        except prompt.InvalidChoice as ex:
            raise PreconditionError(str(ex)) from ex
        if name is None:
            return None
        return self.upgrader.get_channel(name)

    def _make_plan(self, channel: UpgradeChannel) -> UpgradePlan:
        current_version = self.upgrader.get_current_version(self.distro)
        target_version = resolver.resolve_target(channel.version_source, current_version, self.ctx.fetch)
        plan = UpgradePlan(
            self.upgrader.distribution,
            channel.name,
            current_version,
            target_version,
            self.ctx.dry_run,
        )
        log.info(f"Upgrade plan: {plan}")
        return plan

    def _run_preflight_checks(self) -> None:
        checks = self.upgrader.get_check_actions(self.ctx)
        if not checks:
            log.info("All pre-flight checks are skipped")
            return

        self.ctx.write("Doing pre-flight checks...\n")
        with action.CheckFlow(checks) as check_flow:
            check_flow.validate_actions()
            try:
                results = check_flow.make_checks()
            except RuntimeError as ex:
                raise PreflightFailure(f"{ex}: {ex.__cause__}") from ex

        failed = [r for r in results if r.status is action.PreflightStatus.FAIL]
        warned = [r for r in results if r.status is action.PreflightStatus.WARN]
        for result in results:
            self.ctx.write(f"  [{result.status.value}] {result.check_name}\n")
            if result.status is not action.PreflightStatus.OK:
                self.ctx.write(f"\t{result.message}\n")
                log.warn(f"Pre-flight check {result.check_name!r}: {result.status.value}, {result.message}")

        if failed:
            raise PreflightFailure(
                "The upgrade can't be performed due to failed checks: " + ", ".join(r.check_name for r in failed)
            )
        if warned and not self.ctx.confirmation.confirm("Continue anyway?", default=False):
            raise PreflightFailure("The upgrade is cancelled because of the pre-flight warnings")

    def _describe_plan(self, channel: UpgradeChannel, stages: typing.Dict[str, typing.List[action.ActiveAction]]) -> None:
        assert self.plan is not None
        self.ctx.write(
            f"Upgrade plan for {self.distro}:\n"
            f"  Channel: {channel.name}\n"
            f"  Current: {self.plan.current_version}\n"
            f"  Target:  {self.plan.target_version}\n"
        )
        for stage_id, actions in stages.items():
            if not actions:
                continue
            self.ctx.write(f"Stage {stage_id!r}:\n")
            for act in actions:
                self.ctx.write(f"- {act.name}\n")
        if channel.warning:
            self.ctx.write(f"Warning: {channel.warning}\n")

    def _confirm_plan(self, channel: UpgradeChannel, stages: typing.Dict[str, typing.List[action.ActiveAction]]) -> bool:
        self._describe_plan(channel, stages)
        if self.ctx.dry_run:
            return True
        return self.ctx.confirmation.confirm("Continue with upgrade?", default=False)

    def _offer_snapshot(self) -> None:
        if self.ctx.no_snapshot:
            log.info("Snapshot is skipped by the user")
            return

        tool = snapshot.detect_snapshot_tool()
        if tool is snapshot.SnapshotTool.NONE:
            self.ctx.write(messages.SNAPSHOT_TOOL_MISSING_WARNING)
            return

        if not self.ctx.dry_run and not self.ctx.confirmation.confirm(f"Create pre-upgrade {tool} snapshot?", default=True):
            log.info("User declined the snapshot")
            return

        try:
            handle = snapshot.create_snapshot(tool, self.ctx.runner)
            if not self.ctx.dry_run:
                path = snapshot.persist_snapshot_handle(handle, self.ctx.snapshot_record_dir)
                self.ctx.write(f"Snapshot {handle.identifier} created, its identifier is saved to {path}\n")
            self.snapshot = handle
        except (snapshot.SnapshotError, subprocess.CalledProcessError, OSError) as ex:
            # The upgrade goes on without the snapshot
            self.ctx.write(f"Warning: unable to create {tool} snapshot: {ex}\n")
            log.warn(f"Unable to create {tool} snapshot: {ex}")

    def _collect_hook_summaries(self, stages: typing.Dict[str, typing.List[action.ActiveAction]]) -> None:
        for actions in stages.values():
            for act in actions:
                if isinstance(act, hook_actions.RunHooks) and act.summary is not None:
                    self.hook_summaries[act.phase] = act.summary

    def _run_actions(self, stages: typing.Dict[str, typing.List[action.ActiveAction]]) -> bool:
        tracker = StateTracker(self)
        with action.PrepareActionsFlow(stages, self.ctx.flow_state_dir, tracker) as flow:
            flow.validate_actions()
            try:
                flow.pass_actions()
            except UnicodeDecodeError as ex:
                log.err(f"Encoding problem during the upgrade: {ex}")
        self._collect_hook_summaries(stages)

        if not flow.is_failed():
            return True

        self._error = str(flow.get_error())
        log.err(f"Failed at stage {flow.get_current_stage()!r}, action {flow.get_current_action()!r}")
        printerr(self._error)
        self._rollback(stages, flow.actions_data)
        self._show_log_tail()
        self.enter(State.ABORTED)
        return False

    def _rollback(
        self,
        stages: typing.Dict[str, typing.List[action.ActiveAction]],
        actions_data: typing.Dict[str, typing.List[typing.Dict[str, typing.Any]]],
    ) -> None:
        self.enter(State.ROLLING_BACK)
        with action.RevertActionsFlow(stages, self.ctx.flow_state_dir, actions_data=actions_data) as revert_flow:
            revert_flow.validate_actions()
            revert_flow.pass_actions()

        if revert_flow.is_failed():
            printerr(
                f"Unable to restore the configuration: {revert_flow.get_error()}. "
                f"Backups are listed in {self.ctx.backup.path_to_records}"
            )
        else:
            self.ctx.write(messages.ROLLBACK_FINISHED_MESSAGE)

    def _show_log_tail(self) -> None:
        logfile_path = self.ctx.log_path
        if logfile_path is None or not os.path.exists(logfile_path):
            return

        additional_message = ""
        if self.ctx.backup.records and not self.ctx.dry_run:
            additional_message = f"\nBackups of the configuration are listed in {self.ctx.backup.path_to_records}."
        self.ctx.write(messages.FAIL_MESSAGE_HEAD.format(logfile_path=logfile_path))
        for line in files.get_last_lines(logfile_path, 100):
            self.ctx.write(line)
        self.ctx.write(messages.FAIL_MESSAGE_TAIL.format(logfile_path=logfile_path, additional_message=additional_message))

    def _finish(self) -> None:
        assert self.plan is not None
        if self.ctx.dry_run:
            self.ctx.write(messages.DRY_RUN_COMPLETED_MESSAGE)
            return

        self.ctx.write(messages.UPGRADE_COMPLETED_MESSAGE.format(
            distro=self.upgrader.display_name,
            channel=self.plan.channel,
            target_version=self.plan.target_version,
            logfile_path=self.ctx.log_path or "the log file",
        ))

        adapter = self.upgrader.adapter
        if not adapter.is_reboot_recommended(self.plan, self.ctx.runner):
            return

        reboot_command = adapter.reboot_command(self.plan)
        self.ctx.write(messages.REBOOT_RECOMMENDED_MESSAGE.format(reboot_command=reboot_command))
        # --yes never reboots the system
        if self.ctx.assume_yes or not self.ctx.confirmation.confirm("Reboot now?", default=False):
            return

        log.info("Going to reboot the system")
        try:
            self.ctx.runner.run(reboot_command)
        except (subprocess.CalledProcessError, OSError) as ex:
            log.warn(f"Unable to reboot: {ex}")
            self.ctx.write(f"Warning: unable to reboot, run '{reboot_command}' manually\n")
