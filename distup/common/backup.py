# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import os
import time
import typing

from . import files, log


BACKUPS_DATA_FILE = "backups.json"


def make_timestamp() -> str:
    return time.strftime("%Y%m%d-%H%M%S")


class ConfigBackupRecord:
    original_path: str
    backup_path: str
    timestamp: str
    existed: bool

    def __init__(
        self,
        original_path: str,
        backup_path: str,
        timestamp: str,
        existed: bool = True,
    ):
        self.original_path = original_path
        self.backup_path = backup_path
        self.timestamp = timestamp
        self.existed = existed

    def __repr__(self) -> str:
        attrs = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        return f"{self.__class__.__name__}({attrs})"

    def __eq__(self, other) -> bool:
        return isinstance(other, ConfigBackupRecord) and self.__dict__ == other.__dict__

    def is_complete(self) -> bool:
        """The record can be used for restoration."""
        return not self.existed or os.path.exists(self.backup_path)

    def to_dict(self) -> typing.Dict[str, typing.Any]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: typing.Dict[str, typing.Any]) -> "ConfigBackupRecord":
        return cls(
            data["original_path"],
            data["backup_path"],
            data["timestamp"],
            existed=data.get("existed", True),
        )


class ConfigBackup:
    """
    Backs up configuration files and directories next to the originals.

    A backup of /etc/apt/sources.list made at 20250101-120000 is stored as
    /etc/apt/sources.list.distup-20250101-120000.bak. The copy is written
    under a temporary name and renamed into place, so a backup path either
    doesn't exist or holds a complete copy. Records are also kept in the
    state directory to let the user find them after an interrupted run.
    Backups are never removed by the tool.
    """
    state_dir: str
    dry_run: bool
    timestamp: str
    records: typing.List[ConfigBackupRecord]

    def __init__(self, state_dir: str, dry_run: bool = False, timestamp: typing.Optional[str] = None):
        self.state_dir = state_dir
        self.dry_run = dry_run
        self.timestamp = timestamp if timestamp is not None else make_timestamp()
        self.records = []

    @staticmethod
    def get_path_to_records(state_dir: str) -> str:
        return os.path.join(state_dir, BACKUPS_DATA_FILE)

    @property
    def path_to_records(self) -> str:
        return self.get_path_to_records(self.state_dir)

    def _get_backup_path(self, path: str) -> str:
        backup_path = f"{path}.distup-{self.timestamp}.bak"
        counter = 1
        while os.path.lexists(backup_path):
            backup_path = f"{path}.distup-{self.timestamp}.{counter}.bak"
            counter += 1
        return backup_path

    def backup(self, path: str) -> ConfigBackupRecord:
        path = os.path.normpath(path)
        if not os.path.lexists(path):
            log.info(f"{path!r} doesn't exist, it will be removed on restoration")
            record = ConfigBackupRecord(path, "", self.timestamp, existed=False)
        else:
            record = ConfigBackupRecord(path, self._get_backup_path(path), self.timestamp)
            if self.dry_run:
                log.info(f"Would back up {path!r} to {record.backup_path!r}")
            else:
                log.info(f"Backing up {path!r} to {record.backup_path!r}")
                files.copy_atomically(path, record.backup_path)

        self.records.append(record)
        if not self.dry_run:
            self._save()
        return record

    def backup_all(self, paths: typing.Iterable[str]) -> typing.List[ConfigBackupRecord]:
        return [self.backup(path) for path in paths]

    def _covers(self, record: ConfigBackupRecord, path: str) -> bool:
        return path == record.original_path or path.startswith(record.original_path.rstrip(os.sep) + os.sep)

    def verify(self, paths: typing.Optional[typing.Iterable[str]] = None) -> bool:
        """
        Check that a complete backup exists for every given path (or for every record).
        A path inside a backed up directory is covered by the directory backup.
        """
        if paths is None:
            return all(record.is_complete() for record in self.records)

        for path in paths:
            path = os.path.normpath(path)
            matching = [r for r in self.records if self._covers(r, path)]
            if not matching or not all(r.is_complete() for r in matching):
                log.debug(f"No complete backup record for {path!r}")
                return False
        return True

    def restore(self, records: typing.Optional[typing.List[ConfigBackupRecord]] = None) -> None:
        if records is None:
            records = self.records

        # The latest backup of a path is the closest one to the original state,
        # so restore in reverse order
        for record in reversed(records):
            if self.dry_run:
                log.info(f"Would restore {record.original_path!r} from {record.backup_path!r}")
                continue

            if not record.existed:
                log.info(f"Removing {record.original_path!r} which didn't exist before the upgrade")
                files.remove_path(record.original_path)
                continue

            if not os.path.exists(record.backup_path):
                raise FileNotFoundError(f"Backup {record.backup_path!r} of {record.original_path!r} is missing")

            log.info(f"Restoring {record.original_path!r} from {record.backup_path!r}")
            files.replace_path(record.backup_path, record.original_path)

    def _save(self) -> None:
        if not os.path.isdir(self.state_dir):
            os.makedirs(self.state_dir, 0o750, exist_ok=True)

        data = files.read_json_file(self.path_to_records, default={"backups": []})
        known = [ConfigBackupRecord.from_dict(r) for r in data.get("backups", [])]
        for record in self.records:
            if record not in known:
                known.append(record)
        files.rewrite_json_file(self.path_to_records, {"backups": [r.to_dict() for r in known]})


def load_records(state_dir: str) -> typing.List[ConfigBackupRecord]:
    data = files.read_json_file(ConfigBackup.get_path_to_records(state_dir), default={"backups": []})
    return [ConfigBackupRecord.from_dict(r) for r in data.get("backups", [])]
