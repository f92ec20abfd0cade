# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing
import unittest

from distup.common import log, util, writers


class TestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        log.debug(f"Running the test case {cls.__name__}")


class FakeRunner(util.CommandRunner):
    """
    Records commands instead of running them. Results of particular commands
    are set by program name and arguments, e.g. {("pacman", "-Qu"): "linux 1 -> 2\\n"}.
    A command mapped to an exception raises it.
    """

    def __init__(
        self,
        dry_run: bool = False,
        outputs: typing.Optional[typing.Dict[typing.Tuple[str, ...], typing.Any]] = None,
        exit_codes: typing.Optional[typing.Dict[typing.Tuple[str, ...], int]] = None,
    ):
        super().__init__(dry_run=dry_run, writer=writers.BufferWriter())
        self.outputs = outputs if outputs is not None else {}
        self.exit_codes = exit_codes if exit_codes is not None else {}

    def _result(self, args: typing.Sequence[str]) -> str:
        out = self.outputs.get(tuple(args), "")
        if isinstance(out, Exception):
            raise out
        return out

    def run(self, command: util.Command) -> str:
        if self._skip_in_dry_run(command):
            return ""
        self.executed.append(command)
        return self._result(command.args)

    def call(self, command: util.Command) -> int:
        if self._skip_in_dry_run(command):
            return 0
        self.executed.append(command)
        return self.exit_codes.get(tuple(command.args), 0)

    def query(self, args: typing.Sequence[str]) -> str:
        self.executed.append(util.Command(args, mutating=False))
        return self._result(args)

    @property
    def executed_args(self) -> typing.List[typing.List[str]]:
        return [list(command.args) for command in self.executed]

    @property
    def output(self) -> str:
        return self.writer.getvalue()
