# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import os
import re
import typing

from distup.common import action, log, prompt, util


LEAPP_REPORT_PATH = "/var/log/leapp/leapp-report.txt"

RISK_LEVELS = ("high", "medium", "low")


class LeappReportSummary(typing.NamedTuple):
    high: int
    medium: int
    low: int
    high_risk_entries: typing.List[str]


def summarize_leapp_report(content: str) -> LeappReportSummary:
    """Count report entries by risk factor, and collect the titles of the high risk ones."""
    counts = {level: 0 for level in RISK_LEVELS}
    high_risk_entries = []
    for entry in re.split(r"\n-{10,}\n", content):
        match = re.search(r"Risk Factor:\s*(\w+)", entry, re.IGNORECASE)
        if not match or match.group(1).lower() not in counts:
            continue
        level = match.group(1).lower()
        counts[level] += 1
        if level == "high":
            title = re.search(r"Title:\s*(.+)", entry)
            high_risk_entries.append(title.group(1).strip() if title else entry.strip().splitlines()[0])
    return LeappReportSummary(counts["high"], counts["medium"], counts["low"], high_risk_entries)


class RunLeappPreupgrade(action.ActiveAction):
    """
    Run the leapp pre-upgrade assessment. Inhibitors found by leapp are
    reported, the report is kept for the user to review.
    """
    summary: typing.Optional[LeappReportSummary]

    def __init__(self, runner: util.CommandRunner, report_path: str = LEAPP_REPORT_PATH):
        self.name = "run leapp pre-upgrade assessment"
        self.description = "Check the system for upgrade inhibitors with leapp preupgrade"
        self.runner = runner
        self.report_path = report_path
        self.summary = None

    def _prepare_action(self) -> action.ActionResult:
        exit_code = self.runner.call(util.Command(["leapp", "preupgrade"]))
        if self.runner.dry_run:
            return action.ActionResult()

        if exit_code != 0:
            self.runner.writer.write("Warning: leapp preupgrade found issues, review the report before upgrading\n")

        if not os.path.exists(self.report_path):
            log.warn(f"Leapp report {self.report_path!r} not found")
            return action.ActionResult(info="leapp report not found")

        with open(self.report_path) as report:
            self.summary = summarize_leapp_report(report.read())

        self.runner.writer.write(
            f"Leapp report summary: {self.summary.high} high, {self.summary.medium} medium, "
            f"{self.summary.low} low risk findings. Full report: {self.report_path}\n"
        )
        for title in self.summary.high_risk_entries:
            self.runner.writer.write(f"  high risk: {title}\n")
        return action.ActionResult()

    def _revert_action(self) -> action.ActionResult:
        return action.ActionResult()


class RunLeappUpgrade(action.ActiveAction):
    def __init__(self, runner: util.CommandRunner, confirmation: prompt.ConfirmationPort):
        self.name = "run leapp upgrade"
        self.description = "Prepare the major version upgrade, it's finished during the next boot"
        self.runner = runner
        self.confirmation = confirmation

    def _prepare_action(self) -> action.ActionResult:
        if not self.runner.dry_run:
            self.runner.writer.write(
                "WARNING: leapp upgrade starts an in-place major version upgrade. "
                "Make sure the leapp report contains no inhibitors and you have a full backup.\n"
            )
            if not self.confirmation.confirm_phrase("Are you sure you want to proceed?", "yes"):
                return action.ActionResult(action.ActionState.SKIPPED, "cancelled by the user")

        self.runner.run(util.Command(["leapp", "upgrade"]))
        return action.ActionResult()

    def _revert_action(self) -> action.ActionResult:
        return action.ActionResult()
