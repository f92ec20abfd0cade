# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import os
import re
import shutil
import subprocess
import time
import typing
from enum import Enum

from . import files, log, util


SNAPSHOT_DESCRIPTION = "distup pre-upgrade snapshot"
DEFAULT_BTRFS_SNAPSHOTS_DIR = "/snapshots"
DEFAULT_LVM_SNAPSHOT_SIZE = "5G"
DEFAULT_RECORD_DIR = "/tmp"


class SnapshotTool(str, Enum):
    TIMESHIFT = "timeshift"
    SNAPPER = "snapper"
    BTRFS = "btrfs"
    LVM = "lvm"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


class SnapshotHandle(typing.NamedTuple):
    tool: SnapshotTool
    identifier: str


class SnapshotError(Exception):
    pass


def _root_filesystem_type(mounts_path: str = "/proc/mounts") -> typing.Optional[str]:
    if not os.path.exists(mounts_path):
        return None
    fstype = None
    with open(mounts_path) as mounts:
        for line in mounts:
            fields = line.split()
            # The last mount over / is the effective one
            if len(fields) >= 3 and fields[1] == "/":
                fstype = fields[2]
    return fstype


def _lvm_available(which: typing.Callable[[str], typing.Optional[str]]) -> bool:
    if which("lvcreate") is None or which("lvs") is None:
        return False
    return subprocess.run(["lvs"], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL).returncode == 0


def detect_snapshot_tool(
    which: typing.Callable[[str], typing.Optional[str]] = shutil.which,
    mounts_path: str = "/proc/mounts",
) -> SnapshotTool:
    """Pick the first available tool: timeshift, snapper, btrfs (on a btrfs root), LVM."""
    if which("timeshift") is not None:
        return SnapshotTool.TIMESHIFT
    if which("snapper") is not None:
        return SnapshotTool.SNAPPER
    if which("btrfs") is not None and _root_filesystem_type(mounts_path) == "btrfs":
        return SnapshotTool.BTRFS
    if _lvm_available(which):
        return SnapshotTool.LVM
    return SnapshotTool.NONE


def parse_mapper_device(source: str) -> typing.Optional[typing.Tuple[str, str]]:
    """Split /dev/mapper/<vg>-<lv> into volume group and logical volume names."""
    # Device mapper doubles dashes which are a part of VG or LV names
    match = re.fullmatch(r"/dev/mapper/((?:[^-]|--)+)-((?:[^-]|--)+)", source.strip())
    if not match:
        return None
    return match.group(1).replace("--", "-"), match.group(2).replace("--", "-")


def _create_timeshift(runner: util.CommandRunner, description: str, timestamp: str) -> str:
    out = runner.run(util.Command(["timeshift", "--create", "--comments", description, "--tags", "D"]))
    match = re.search(r"snapshot '([^']+)'", out)
    return match.group(1) if match else description


def _create_snapper(runner: util.CommandRunner, description: str, timestamp: str, config: str = "root") -> str:
    if runner.call(util.Command(["snapper", "-c", config, "list"], mutating=False)) != 0:
        raise SnapshotError(f"Snapper configuration {config!r} is not available")
    out = runner.run(util.Command(
        ["snapper", "-c", config, "create", "--type", "pre", "--print-number", "--description", description]
    ))
    if runner.dry_run:
        return ""
    number = out.strip()
    if not number:
        raise SnapshotError("Snapper did not report the snapshot number")
    return number


def _create_btrfs(
    runner: util.CommandRunner,
    description: str,
    timestamp: str,
    snapshots_dir: str = DEFAULT_BTRFS_SNAPSHOTS_DIR,
) -> str:
    path = os.path.join(snapshots_dir, f"distup-pre-upgrade-{timestamp}")
    if not runner.dry_run:
        os.makedirs(snapshots_dir, exist_ok=True)
    runner.run(util.Command(["btrfs", "subvolume", "snapshot", "-r", "/", path]))
    return path


def _create_lvm(
    runner: util.CommandRunner,
    description: str,
    timestamp: str,
    size: str = DEFAULT_LVM_SNAPSHOT_SIZE,
) -> str:
    source = runner.query(["findmnt", "-n", "-o", "SOURCE", "/"]).splitlines()
    names = parse_mapper_device(source[0]) if source else None
    if names is None:
        raise SnapshotError(f"The root filesystem is not on a logical volume: {source!r}")

    vg_name, lv_name = names
    snapshot_name = f"{lv_name}_distup_snap_{timestamp}"
    runner.run(util.Command(["lvcreate", "-L", size, "-s", "-n", snapshot_name, f"/dev/{vg_name}/{lv_name}"]))
    return f"/dev/{vg_name}/{snapshot_name}"


_creators: typing.Dict[SnapshotTool, typing.Callable[[util.CommandRunner, str, str], str]] = {
    SnapshotTool.TIMESHIFT: _create_timeshift,
    SnapshotTool.SNAPPER: _create_snapper,
    SnapshotTool.BTRFS: _create_btrfs,
    SnapshotTool.LVM: _create_lvm,
}


def create_snapshot(
    tool: SnapshotTool,
    runner: util.CommandRunner,
    description: str = SNAPSHOT_DESCRIPTION,
    timestamp: typing.Optional[str] = None,
) -> SnapshotHandle:
    if tool is SnapshotTool.NONE:
        raise SnapshotError("No snapshot tool available")
    if timestamp is None:
        timestamp = time.strftime("%Y%m%d-%H%M%S")

    log.info(f"Creating {tool} snapshot {description!r}")
    identifier = _creators[tool](runner, description, timestamp)
    return SnapshotHandle(tool, identifier)


def get_record_path(tool: SnapshotTool, record_dir: str = DEFAULT_RECORD_DIR) -> str:
    return os.path.join(record_dir, f"distup-{tool}-snapshot")


def persist_snapshot_handle(handle: SnapshotHandle, record_dir: str = DEFAULT_RECORD_DIR) -> str:
    """Store the snapshot identifier so it can be found for a manual rollback."""
    path = get_record_path(handle.tool, record_dir)
    files.rewrite_file(path, handle.identifier + "\n")
    log.info(f"Snapshot identifier {handle.identifier!r} saved to {path!r}")
    return path
