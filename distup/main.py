#!/usr/bin/python3
# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import argparse
import logging
import os
import signal
import sys
import time
import traceback
import typing
from contextlib import contextmanager

import distup.config
import distup.registry
from distup import messages
from distup.common import backup, dist, hooks, log
from distup.common.dist import DistributionId
from distup.context import Context
from distup.orchestrator import Orchestrator, printerr


PathType = typing.Union[os.PathLike, str]


@contextmanager
def try_lock(lock_file: PathType) -> typing.Generator[bool, None, None]:
    try:
        lock_acquired = False
        lock_fd = None
        current_pid = os.getpid()

        log.info(f"Going to obtain lockfile {lock_file!r}...")
        # O_EXCL is used to ensure that the file is created only if it does not already exist.
        # This guarantees that we will not acquire the lock if another process has already taken it.
        lock_fd = os.open(lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        lock_acquired = True
        os.write(lock_fd, str(current_pid).encode())
        os.close(lock_fd)
        log.info(f"Lockfile obtained for pid {current_pid!r}")
        yield True
    except FileExistsError:
        log.info("Lock already obtained by another process")
        yield False
    except OSError as ex:
        log.info(f"Unable to obtain lockfile {lock_file!r}: {ex}")
        yield False
    finally:
        if lock_acquired:
            log.info(f"Going to free lockfile {lock_file!r}...")
            try:
                os.unlink(lock_file)
            except OSError as ex:
                log.warn(f"Failed to remove lockfile {lock_file!r}: {ex}")


def create_exit_signal_handler(state_dir: str) -> typing.Callable[[int, typing.Any], None]:
    def exit_signal_handler(signum, frame):
        # exit will trigger blocks finalization, so lockfile will be removed
        log.info(f"Received signal {signum}, going to exit...")
        print(
            messages.INTERRUPTED_MESSAGE.format(
                signum=signum,
                backups_path=backup.ConfigBackup.get_path_to_records(state_dir),
            ),
            end='',
        )
        sys.exit(1)

    return exit_signal_handler


def assign_killing_signals(handler: typing.Callable[[int, typing.Any], None]) -> None:
    for signum in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
        signal.signal(signum, handler)


DESC_MESSAGE = """Upgrade the distribution to the latest release of the chosen channel.

Channels available for the detected distribution are shown by --list. Without
a channel the utility asks to choose one.

The utility writes a log to <log-dir>/distup-<distribution>-<time>.log. If there are
any issues, you can find more information in the log file.

distup version {revision}.
"""


class ArgumentDefaultsRawDescriptionHelpFormatter(argparse.ArgumentDefaultsHelpFormatter, argparse.RawTextHelpFormatter):
    pass


def create_parser(util_name: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=util_name,
        description=DESC_MESSAGE.format(revision=distup.config.revision),
        formatter_class=ArgumentDefaultsRawDescriptionHelpFormatter,
    )
    parser.add_argument("channel", nargs="?", default=None, help="upgrade channel, e.g. lts, stable or rolling.")
    parser.add_argument(
        "--dry-run", action="store_true",
        help="show what would be done without changing the system."
    )
    parser.add_argument(
        "-y", "--yes", action="store_true", dest="assume_yes",
        help="answer yes to all confirmations. The system is never rebooted automatically."
    )
    parser.add_argument("--no-snapshot", action="store_true", help="don't offer a pre-upgrade snapshot.")
    parser.add_argument("--skip-checks", action="store_true", help="skip all pre-flight checks.")
    parser.add_argument("--skip-disk-check", action="store_true", help="skip the free disk space check.")
    parser.add_argument("--skip-network-check", action="store_true", help="skip the network connectivity check.")
    parser.add_argument("--skip-battery-check", action="store_true", help="skip the battery level check.")
    parser.add_argument(
        "--min-disk-space", type=float, default=distup.config.DEFAULT_MIN_DISK_SPACE_GIB, metavar="GIB",
        help="minimum free space on the root filesystem."
    )
    parser.add_argument(
        "--min-battery", type=int, default=distup.config.DEFAULT_MIN_BATTERY_PERCENT, metavar="PERCENT",
        help="minimum battery charge when running on battery."
    )
    parser.add_argument("--refresh", action="store_true", help="force a refresh of the package databases (Arch Linux).")
    parser.add_argument("--clean", action="store_true", help="clean the package cache after the upgrade (Arch Linux).")

    operation_group = parser.add_mutually_exclusive_group()
    operation_group.add_argument("--list", action="store_true", help="list the channels of the detected distribution.")
    operation_group.add_argument("--detect", action="store_true", help="show the detected distribution.")
    operation_group.add_argument("--init-hooks", action="store_true", help="create the hook directories.")
    operation_group.add_argument("--list-hooks", action="store_true", help="show the configured hooks.")

    parser.add_argument("--log-dir", default=distup.config.DEFAULT_LOG_DIR, help="directory to write the log file to.")
    parser.add_argument(
        "--state-dir", default=distup.config.DEFAULT_STATE_DIR,
        help="directory to keep the records of backups and performed actions."
    )
    parser.add_argument(
        "--verbose", nargs="?", choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        const="DEBUG", default="DEBUG", help="select verbosity level."
    )
    parser.add_argument(
        "-V", "--version", action="store_true",
        help="show the version of this utility."
    )
    return parser


def get_logfile_path(log_dir: str, distribution: str) -> str:
    timestamp = time.strftime(distup.config.LOG_TIMESTAMP_FORMAT)
    return os.path.join(log_dir, f"{distup.config.TOOL_NAME}-{distribution}-{timestamp}.log")


def main(
    argv: typing.Optional[typing.List[str]] = None,
    expected_distribution: typing.Optional[DistributionId] = None,
) -> int:
    util_name = os.path.basename(sys.argv[0]) or distup.config.TOOL_NAME
    options = create_parser(util_name).parse_args(argv)

    if options.version:
        print(f"{util_name} {distup.config.revision}")
        return 0

    distup.registry.register_builtin_upgraders()
    distro = dist.get_distro()

    if options.detect:
        distribution_id = distro.distribution_id
        print(f"{distro} ({distribution_id if distribution_id is not None else 'unsupported'})")
        return 0 if distribution_id is not None else 1

    if expected_distribution is not None:
        upgraders = list(distup.registry.iter_upgraders(distribution=expected_distribution))
    else:
        upgraders = list(distup.registry.iter_upgraders(distro))
    if not upgraders:
        printerr(messages.NOT_SUPPORTED_ERROR.format(util_name=util_name) + f" Detected: {distro}", logit=False)
        return 1
    upgrader_class = upgraders[0]

    if options.list:
        listed = upgrader_class()
        print(f"Channels of {listed.display_name}:")
        for channel in listed.channels:
            print(f"  {channel.name:<15} {channel.description}")
        return 0

    if options.list_hooks:
        print(hooks.describe_hooks(distup.config.DEFAULT_HOOKS_DIR, os.environ.get("SUDO_USER")), end='')
        return 0

    if options.init_hooks:
        for directory in hooks.init_hook_dirs(distup.config.DEFAULT_HOOKS_DIR, os.environ.get("SUDO_USER")):
            print(f"Created {directory}")
        return 0

    # Nothing, the log included, is written for an invalid channel
    if options.channel is not None and upgrader_class().get_channel(options.channel) is None:
        printerr(
            f"Unknown channel {options.channel!r}, available: {', '.join(upgrader_class().get_channel_names())}",
            logit=False,
        )
        return 1

    logfile_path = get_logfile_path(options.log_dir, str(upgrader_class().distribution))
    log.init_logger(
        [logfile_path],
        [],
        loglevel=getattr(logging, options.verbose, logging.DEBUG),
    )
    log.info(f"Started with arguments {sys.argv if argv is None else argv}")

    ctx = Context(
        dry_run=options.dry_run,
        skip_checks=options.skip_checks,
        assume_yes=options.assume_yes,
        no_snapshot=options.no_snapshot,
        skip_disk_check=options.skip_disk_check,
        skip_network_check=options.skip_network_check,
        skip_battery_check=options.skip_battery_check,
        refresh_mirrors=options.refresh,
        clean_cache=options.clean,
        min_disk_space_gib=options.min_disk_space,
        min_battery=options.min_battery,
        state_dir=options.state_dir,
        log_path=logfile_path,
    )
    upgrader = upgrader_class.create(distro, ctx)
    log.info(f"Selected upgrader: {upgrader!r}")
    log.debug(f"Context: {ctx!r}")

    if options.dry_run:
        return run_orchestrator(upgrader, distro, ctx, options.channel)

    if not os.path.exists(options.state_dir):
        os.makedirs(options.state_dir, 0o750)
    elif not os.path.isdir(options.state_dir):
        printerr(
            f"The state directory path exists at {options.state_dir!r}, but it's not a directory. "
            "You can change the directory using --state-dir."
        )
        return 1

    assign_killing_signals(create_exit_signal_handler(options.state_dir))

    lock_file = os.path.join(options.state_dir, f"{distup.config.TOOL_NAME}.lock")
    with try_lock(lock_file) as lock_acquired:
        if not lock_acquired:
            printerr(f"Another {util_name} process is running, lock file {lock_file!r} exists")
            return 1
        return run_orchestrator(upgrader, distro, ctx, options.channel)


def run_orchestrator(upgrader, distro: dist.Distro, ctx: Context, channel: typing.Optional[str]) -> int:
    try:
        result = Orchestrator(upgrader, distro, ctx, channel).run()
    except Exception as ex:
        ex_info = traceback.format_exc()
        printerr(f"Upgrade failed: {ex}\n{ex_info}")
        return 1

    log.info(f"Finished in state {result.state} after {[str(s) for s in result.history]}")
    return result.exit_code


def main_ubuntu() -> int:
    return main(expected_distribution=DistributionId.UBUNTU)


def main_debian() -> int:
    return main(expected_distribution=DistributionId.DEBIAN)


def main_fedora() -> int:
    return main(expected_distribution=DistributionId.FEDORA)


def main_arch() -> int:
    return main(expected_distribution=DistributionId.ARCH)


def main_alpine() -> int:
    return main(expected_distribution=DistributionId.ALPINE)


def main_kali() -> int:
    return main(expected_distribution=DistributionId.KALI)


def main_opensuse() -> int:
    return main(expected_distribution=DistributionId.OPENSUSE)


def main_rhel_clone() -> int:
    return main(expected_distribution=DistributionId.RHEL_CLONE)


if __name__ == "__main__":
    sys.exit(main())
