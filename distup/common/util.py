# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import os
import shlex
import subprocess
from select import select
import typing

from . import log, writers


class Command(typing.NamedTuple):
    """A single external command of an upgrade step."""
    args: typing.Sequence[str]
    """Program and its arguments."""
    mutating: bool = True
    """Whether the command changes the system. Mutating commands are not run in dry-run mode."""
    env: typing.Optional[typing.Dict[str, str]] = None
    """Extra environment variables."""

    def __str__(self) -> str:
        cmdline = " ".join(shlex.quote(str(arg)) for arg in self.args)
        if self.env:
            cmdline = " ".join(f"{k}={shlex.quote(v)}" for k, v in self.env.items()) + " " + cmdline
        return cmdline


def _log_outputs_call(
    cmd: typing.Union[typing.Sequence[str], str],
    collect_return_stdout: bool = False,
    echo: typing.Optional[typing.Callable[[str], None]] = None,
    **kwargs,
) -> typing.Tuple[int, str]:
    log.info(f"Running: {cmd!r}. Output:")
    stdout = []

    def proc_stdout(line: str) -> None:
        log.info("stdout: {}".format(line.rstrip('\n')), to_stream=False)
        if echo is not None:
            echo(line)
        if collect_return_stdout:
            stdout.append(line)

    def proc_stderr(line: str) -> None:
        log.info("stderr: {}".format(line.rstrip('\n')))
        if echo is not None:
            echo(line)

    exit_code = exec_get_output_streamed(cmd, proc_stdout, proc_stderr, **kwargs)
    return exit_code, "".join(stdout)


def log_outputs_check_call(
    cmd: typing.Union[typing.Sequence[str], str],
    collect_return_stdout: bool = False,
    echo: typing.Optional[typing.Callable[[str], None]] = None,
    **kwargs,
) -> str:
    '''
    Runs cmd and raises on nonzero exit code. Returns stdout when collect_return_stdout
    '''
    exit_code, stdout = _log_outputs_call(cmd, collect_return_stdout, echo, **kwargs)
    if exit_code != 0:
        log.err(f"Command {cmd!r} failed with return code {exit_code}")
        raise subprocess.CalledProcessError(returncode=exit_code, cmd=cmd, output=stdout)

    log.info(f"Command {cmd!r} finished successfully")
    return stdout


def log_outputs_call(
    cmd: typing.Union[typing.Sequence[str], str],
    echo: typing.Optional[typing.Callable[[str], None]] = None,
    **kwargs,
) -> int:
    '''
    Runs cmd and returns its exit code, the output is logged
    '''
    exit_code, _ = _log_outputs_call(cmd, echo=echo, **kwargs)
    log.info(f"Command {cmd!r} finished with return code {exit_code}")
    return exit_code


def exec_get_output_streamed(
    cmd: typing.Union[typing.Sequence[str], str],
    process_stdout_line: typing.Optional[typing.Callable[[str], None]],
    process_stderr_line: typing.Optional[typing.Callable[[str], None]],
    **kwargs,
) -> int:
    '''
    Allows to get stdout/stderr by streaming line by line, by calling callbacks
    and returns process exit code
    '''
    kwargs["stdout"] = (subprocess.DEVNULL if process_stdout_line is None
                        else subprocess.PIPE)
    kwargs["stderr"] = (subprocess.DEVNULL if process_stderr_line is None
                        else subprocess.PIPE)
    kwargs["universal_newlines"] = True

    process = subprocess.Popen(cmd, **kwargs)
    if process_stdout_line is None and process_stderr_line is None:
        process.communicate()
        return process.returncode

    streams = {}
    if process_stdout_line is not None:
        if not process.stdout:
            raise RuntimeError(f"Cannot get process stdout of command {cmd!r}")
        streams[process.stdout] = process_stdout_line
    if process_stderr_line is not None:
        if not process.stderr:
            raise RuntimeError(f"Cannot get process stderr of command {cmd!r}")
        streams[process.stderr] = process_stderr_line

    while streams:
        ready, _, _ = select(list(streams), [], [], 1.0)
        for stream in ready:
            line = stream.readline()
            if line:
                streams[stream](line)
            else:
                # EOF, the process closed this stream
                del streams[stream]

    process.wait()
    return process.returncode


class CommandRunner:
    """
    Executes upgrade commands, honouring the dry-run mode.

    Output of every command is streamed line by line into the log and echoed
    through the writer. In dry-run mode mutating commands are only reported
    as "Would execute: <command>", read-only ones are still run.
    """
    dry_run: bool
    writer: writers.Writer
    executed: typing.List[Command]
    skipped: typing.List[Command]

    def __init__(
        self,
        dry_run: bool = False,
        writer: typing.Optional[writers.Writer] = None,
        echo_output: bool = True,
    ):
        self.dry_run = dry_run
        self.writer = writer if writer is not None else writers.StdoutWriter()
        self.echo_output = echo_output
        self.executed = []
        self.skipped = []

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(dry_run={self.dry_run!r})"

    def _environment(self, command: Command) -> typing.Optional[typing.Dict[str, str]]:
        if not command.env:
            return None
        env = dict(os.environ)
        env.update(command.env)
        return env

    def _echo(self) -> typing.Optional[typing.Callable[[str], None]]:
        return self.writer.write if self.echo_output else None

    def _skip_in_dry_run(self, command: Command) -> bool:
        if not (self.dry_run and command.mutating):
            return False
        self.writer.write(f"Would execute: {command}\n")
        log.info(f"Would execute: {command}")
        self.skipped.append(command)
        return True

    def run(self, command: Command) -> str:
        """Run the command, raise subprocess.CalledProcessError on failure and return its stdout."""
        if self._skip_in_dry_run(command):
            return ""
        self.executed.append(command)
        return log_outputs_check_call(
            list(command.args),
            collect_return_stdout=True,
            echo=self._echo(),
            env=self._environment(command),
        )

    def call(self, command: Command) -> int:
        """Run the command and return its exit code without raising."""
        if self._skip_in_dry_run(command):
            return 0
        self.executed.append(command)
        return log_outputs_call(
            list(command.args),
            echo=self._echo(),
            env=self._environment(command),
        )

    def query(self, args: typing.Sequence[str]) -> str:
        """Run a read-only command quietly and return its stdout."""
        self.executed.append(Command(args, mutating=False))
        proc = subprocess.run(
            list(args),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=True,
            universal_newlines=True,
        )
        log.debug(f"Command {list(args)!r} returned {proc.returncode}, stdout: {proc.stdout!r}, stderr: {proc.stderr!r}")
        return proc.stdout
