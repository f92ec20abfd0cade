# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import os
import typing

from distup import config
from distup.common import backup, prompt, resolver, util, writers


class Context:
    """
    Everything a single upgrade run depends on: options, collaborators
    and locations. Passed explicitly to the orchestrator, the upgraders
    and through them to the actions.
    """
    dry_run: bool
    assume_yes: bool
    no_snapshot: bool
    skip_disk_check: bool
    skip_network_check: bool
    skip_battery_check: bool
    skip_mirror_check: bool
    require_root: bool
    refresh_mirrors: bool
    clean_cache: bool
    min_disk_space: int
    min_battery: int
    network_hosts: typing.List[str]
    state_dir: str
    log_path: typing.Optional[str]
    hooks_dir: str
    sudo_user: typing.Optional[str]
    snapshot_record_dir: str
    root: str
    writer: writers.Writer
    runner: util.CommandRunner
    confirmation: prompt.ConfirmationPort
    fetch: typing.Callable[[str], str]
    backup: backup.ConfigBackup

    def __init__(
        self,
        dry_run: bool = False,
        skip_checks: bool = False,
        assume_yes: bool = False,
        no_snapshot: bool = False,
        skip_disk_check: bool = False,
        skip_network_check: bool = False,
        skip_battery_check: bool = False,
        skip_mirror_check: bool = False,
        require_root: bool = True,
        refresh_mirrors: bool = False,
        clean_cache: bool = False,
        min_disk_space_gib: float = config.DEFAULT_MIN_DISK_SPACE_GIB,
        min_battery: int = config.DEFAULT_MIN_BATTERY_PERCENT,
        network_hosts: typing.Iterable[str] = config.DEFAULT_NETWORK_HOSTS,
        state_dir: str = config.DEFAULT_STATE_DIR,
        log_path: typing.Optional[str] = None,
        hooks_dir: str = config.DEFAULT_HOOKS_DIR,
        sudo_user: typing.Optional[str] = None,
        snapshot_record_dir: str = config.DEFAULT_SNAPSHOT_RECORD_DIR,
        root: str = "/",
        writer: typing.Optional[writers.Writer] = None,
        runner: typing.Optional[util.CommandRunner] = None,
        confirmation: typing.Optional[prompt.ConfirmationPort] = None,
        fetch: typing.Callable[[str], str] = resolver.fetch_url,
    ):
        self.dry_run = dry_run
        self.assume_yes = assume_yes
        self.no_snapshot = no_snapshot
        # --skip-checks turns off every check, the particular flags turn off one each
        self.skip_disk_check = skip_checks or skip_disk_check
        self.skip_network_check = skip_checks or skip_network_check
        self.skip_battery_check = skip_checks or skip_battery_check
        self.skip_mirror_check = skip_checks or skip_mirror_check
        self.require_root = require_root
        self.refresh_mirrors = refresh_mirrors
        self.clean_cache = clean_cache
        self.min_disk_space = int(min_disk_space_gib * 1024**3)
        self.min_battery = min_battery
        self.network_hosts = list(network_hosts)
        self.state_dir = state_dir
        self.log_path = log_path
        self.hooks_dir = hooks_dir
        self.sudo_user = sudo_user if sudo_user is not None else os.environ.get("SUDO_USER")
        self.snapshot_record_dir = snapshot_record_dir
        self.root = root
        self.writer = writer if writer is not None else writers.StdoutWriter()
        self.runner = runner if runner is not None else util.CommandRunner(dry_run=dry_run, writer=self.writer)
        if confirmation is not None:
            self.confirmation = confirmation
        elif assume_yes:
            self.confirmation = prompt.AutoConfirmation(answer=True)
        else:
            self.confirmation = prompt.TerminalConfirmation(writer=self.writer)
        self.fetch = fetch
        self.backup = backup.ConfigBackup(state_dir, dry_run=dry_run)

    def __repr__(self) -> str:
        attrs = ", ".join(
            f"{k}={v!r}" for k, v in self.__dict__.items()
            if k not in ("writer", "runner", "confirmation", "fetch", "backup")
        )
        return f"{self.__class__.__name__}({attrs})"

    @property
    def flow_state_dir(self) -> typing.Optional[str]:
        """Where the actions flow keeps its state, nothing is stored in dry-run mode."""
        return None if self.dry_run else self.state_dir

    def write(self, message: str) -> None:
        self.writer.write(message)
