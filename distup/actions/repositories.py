# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import os
import typing

from distup.common import action, backup, files, log, repos, util

if typing.TYPE_CHECKING:
    from distup.upgrader import PackageManagerAdapter, UpgradePlan


class BackupConfiguration(action.ActiveAction):
    """
    Back up the package manager configuration. Reverting the action puts the
    configuration back and resynchronizes the package index with it.
    """
    config_backup: backup.ConfigBackup
    paths: typing.List[str]
    records: typing.List[backup.ConfigBackupRecord]

    def __init__(
        self,
        config_backup: backup.ConfigBackup,
        paths: typing.Iterable[str],
        runner: util.CommandRunner,
        adapter: "PackageManagerAdapter",
    ):
        self.name = "back up package manager configuration"
        self.description = "Back up repository configuration to restore it in case of failure"
        self.config_backup = config_backup
        self.paths = list(paths)
        self.runner = runner
        self.adapter = adapter
        self.records = []

    def _prepare_action(self) -> action.ActionResult:
        self.records = self.config_backup.backup_all(self.paths)
        for record in self.records:
            if record.existed:
                self.runner.writer.write(f"Backup of {record.original_path} saved to {record.backup_path}\n")
        return action.ActionResult()

    def _revert_action(self) -> action.ActionResult:
        self.runner.writer.write("Restoring package manager configuration from the backup...\n")
        self.config_backup.restore(self.records)
        for command in self.adapter.resync_commands():
            self.runner.run(command)
        return action.ActionResult()


class RewriteRepositories(action.ActiveAction):
    """
    Replace the repository configuration with the one of the target release.
    The live configuration is touched only if its backup is complete.
    """
    repository_file: str
    plan: "UpgradePlan"
    before_commands: typing.List[util.Command]

    def __init__(
        self,
        config_backup: backup.ConfigBackup,
        repository_file: str,
        plan: "UpgradePlan",
        runner: util.CommandRunner,
        mirror: typing.Optional[str] = None,
        before_commands: typing.Optional[typing.List[util.Command]] = None,
    ):
        self.name = "rewrite repository configuration"
        self.description = f"Point {repository_file} to the {plan.channel} repositories"
        self.config_backup = config_backup
        self.repository_file = repository_file
        self.plan = plan
        self.runner = runner
        self.mirror = mirror
        self.before_commands = before_commands if before_commands is not None else []

    def _render(self) -> str:
        content = repos.render(self.plan.distribution, self.plan.channel, self.plan.target_version, self.mirror)
        if content is None:
            raise ValueError(f"No repository configuration for {self.plan.distribution}")
        return content

    def _prepare_action(self) -> action.ActionResult:
        content = self._render()

        if self.runner.dry_run:
            for command in self.before_commands:
                self.runner.run(command)
            self.runner.writer.write(f"Would write to {self.repository_file}:\n")
            for line in content.splitlines():
                self.runner.writer.write(f"  {line}\n")
            return action.ActionResult()

        if not self.config_backup.verify([self.repository_file]):
            return action.ActionResult(
                action.ActionState.FAILED,
                f"there is no complete backup of {self.repository_file!r}, refusing to change it",
            )

        for command in self.before_commands:
            self.runner.run(command)

        directory = os.path.dirname(self.repository_file)
        if directory and not os.path.isdir(directory):
            os.makedirs(directory, 0o755, exist_ok=True)
        files.rewrite_file(self.repository_file, content)
        log.info(f"Repository configuration {self.repository_file!r} is set to:\n{content}")
        return action.ActionResult()

    def _revert_action(self) -> action.ActionResult:
        # The configuration is restored by the backup action
        return action.ActionResult()


class SetConfigVariable(action.ActiveAction):
    """Set a variable in a section of an INI-like configuration file."""
    filename: str
    section: str
    variable: str
    value: str

    def __init__(
        self,
        filename: str,
        section: str,
        variable: str,
        value: str,
        runner: util.CommandRunner,
        config_backup: typing.Optional[backup.ConfigBackup] = None,
    ):
        self.name = f"set {variable} in {filename}"
        self.description = f"Set {section}.{variable}={value} in {filename}"
        self.filename = filename
        self.section = section
        self.variable = variable
        self.value = value
        self.runner = runner
        self.config_backup = config_backup

    def _is_required(self) -> bool:
        return os.path.exists(self.filename)

    def _prepare_action(self) -> action.ActionResult:
        if self.runner.dry_run:
            self.runner.writer.write(f"Would set {self.variable}={self.value} in {self.filename}\n")
            return action.ActionResult()

        if self.config_backup is not None and not self.config_backup.verify([self.filename]):
            return action.ActionResult(
                action.ActionState.FAILED,
                f"there is no complete backup of {self.filename!r}, refusing to change it",
            )

        files.cnf_set_section_variable(self.filename, self.section, self.variable, self.value)
        return action.ActionResult()

    def _revert_action(self) -> action.ActionResult:
        return action.ActionResult()
