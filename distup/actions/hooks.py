# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing

from distup.common import action, hooks, util


class RunHooks(action.ActiveAction):
    phase: str
    directories: typing.List[str]
    summary: typing.Optional[hooks.HookSummary]

    def __init__(self, phase: str, directories: typing.Iterable[str], runner: util.CommandRunner):
        self.name = f"run {phase}-upgrade hooks"
        self.phase = phase
        self.directories = list(directories)
        self.description = f"Run executable files from {', '.join(self.directories)}"
        self.runner = runner
        self.summary = None

    def _prepare_action(self) -> action.ActionResult:
        self.summary = hooks.run_hooks(self.directories, self.phase, self.runner)
        # Failed hooks never stop the upgrade
        if self.summary.failed_count:
            return action.ActionResult(
                info=f"{self.summary.failed_count} of {self.summary.count} hooks failed",
            )
        return action.ActionResult()

    def _revert_action(self) -> action.ActionResult:
        return action.ActionResult()
