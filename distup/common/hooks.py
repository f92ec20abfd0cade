# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import os
import pwd
import stat
import typing

from . import log, util


SYSTEM_HOOKS_DIR = "/etc/distup/hooks.d"
USER_HOOKS_SUBDIR = ".config/distup/hooks.d"

PHASES = ("pre", "post")


class HookExecution(typing.NamedTuple):
    hook_path: str
    phase: str
    exit_code: int

    @property
    def failed(self) -> bool:
        return self.exit_code != 0


class HookSummary(typing.NamedTuple):
    count: int
    failed_count: int
    executions: typing.Tuple[HookExecution, ...] = ()


def get_phase_dirname(phase: str) -> str:
    if phase not in PHASES:
        raise ValueError(f"Unknown hook phase {phase!r}")
    return f"{phase}-upgrade.d"


def get_user_home(user: typing.Optional[str]) -> typing.Optional[str]:
    if not user:
        return None
    try:
        return pwd.getpwnam(user).pw_dir
    except KeyError:
        log.warn(f"Unable to find home directory of user {user!r}")
        return None


def get_hook_directories(
    phase: str,
    system_dir: str = SYSTEM_HOOKS_DIR,
    sudo_user: typing.Optional[str] = None,
) -> typing.List[str]:
    """System hooks directory of the phase followed by the one of the user invoking sudo."""
    dirname = get_phase_dirname(phase)
    res = [os.path.join(system_dir, dirname)]
    user_home = get_user_home(sudo_user)
    if user_home is not None:
        res.append(os.path.join(user_home, USER_HOOKS_SUBDIR, dirname))
    return res


def is_hook(path: str) -> bool:
    try:
        st = os.stat(path)
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode) and os.access(path, os.X_OK)


def find_hooks(directory: str) -> typing.List[str]:
    """Executable regular files of the directory in lexical order, subdirectories are not searched."""
    if not os.path.isdir(directory):
        return []
    return [
        os.path.join(directory, name) for name in sorted(os.listdir(directory))
        if is_hook(os.path.join(directory, name))
    ]


def run_hooks(
    directories: typing.Iterable[str],
    phase: str,
    runner: util.CommandRunner,
) -> HookSummary:
    """
    Run hooks of the phase. A failed hook is reported, but doesn't stop
    the other hooks or the upgrade.
    """
    executions = []
    for directory in directories:
        hooks = find_hooks(directory)
        log.debug(f"Found {len(hooks)} {phase}-upgrade hooks in {directory!r}")
        for hook in hooks:
            runner.writer.write(f"Running {phase}-upgrade hook: {os.path.basename(hook)}\n")
            try:
                exit_code = runner.call(util.Command([hook]))
            except OSError as ex:
                log.warn(f"Unable to execute hook {hook!r}: {ex}")
                exit_code = 126

            if exit_code != 0:
                runner.writer.write(f"Warning: hook {os.path.basename(hook)} failed with exit code {exit_code}\n")
                log.warn(f"Hook {hook!r} failed with exit code {exit_code}")
            executions.append(HookExecution(hook, phase, exit_code))

    summary = HookSummary(len(executions), sum(1 for e in executions if e.failed), tuple(executions))
    if summary.count == 0:
        log.info(f"No {phase}-upgrade hooks found")
    elif summary.failed_count:
        runner.writer.write(f"Warning: {summary.failed_count} of {summary.count} {phase}-upgrade hooks failed\n")
    else:
        log.info(f"All {summary.count} {phase}-upgrade hooks completed")
    return summary


def init_hook_dirs(
    system_dir: str = SYSTEM_HOOKS_DIR,
    sudo_user: typing.Optional[str] = None,
) -> typing.List[str]:
    created = []
    for phase in PHASES:
        for directory in get_hook_directories(phase, system_dir, sudo_user):
            os.makedirs(directory, 0o755, exist_ok=True)
            created.append(directory)

    # User directories have to belong to the user, not to root running sudo
    user_home = get_user_home(sudo_user)
    if user_home is not None and sudo_user is not None:
        entry = pwd.getpwnam(sudo_user)
        for root, dirs, _ in os.walk(os.path.join(user_home, ".config", "distup")):
            os.chown(root, entry.pw_uid, entry.pw_gid)
            for d in dirs:
                os.chown(os.path.join(root, d), entry.pw_uid, entry.pw_gid)
    return created


def describe_hooks(
    system_dir: str = SYSTEM_HOOKS_DIR,
    sudo_user: typing.Optional[str] = None,
) -> str:
    lines = []
    for phase in PHASES:
        for directory in get_hook_directories(phase, system_dir, sudo_user):
            if not os.path.isdir(directory):
                lines.append(f"{directory}: not created")
                continue
            hooks = find_hooks(directory)
            lines.append(f"{directory}: {len(hooks)} hook(s)")
            lines += [f"  - {os.path.basename(hook)}" for hook in hooks]
    return "\n".join(lines) + "\n"
