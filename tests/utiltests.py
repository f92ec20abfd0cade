# Copyright 2023-2025. WebPros International GmbH. All rights reserved.
import subprocess

from distup.common import util, writers
from tests.testcase import TestCase


class TestCommand(TestCase):
    def test_str(self):
        self.assertEqual(str(util.Command(["apt-get", "-y", "dist-upgrade"])), "apt-get -y dist-upgrade")

    def test_str_quoting_and_env(self):
        command = util.Command(["sh", "-c", "echo a b"], env={"DEBIAN_FRONTEND": "noninteractive"})
        self.assertEqual(str(command), "DEBIAN_FRONTEND=noninteractive sh -c 'echo a b'")


class TestCommandRunner(TestCase):
    def setUp(self):
        self.writer = writers.BufferWriter()
        self.runner = util.CommandRunner(writer=self.writer)

    def test_run_returns_stdout(self):
        out = self.runner.run(util.Command(["sh", "-c", "echo first; echo second >&2"]))
        self.assertEqual(out, "first\n")
        self.assertIn("first\n", self.writer.messages)
        self.assertIn("second\n", self.writer.messages)
        self.assertEqual(len(self.runner.executed), 1)

    def test_run_failure(self):
        with self.assertRaises(subprocess.CalledProcessError) as cm:
            self.runner.run(util.Command(["sh", "-c", "echo partial; exit 3"]))
        self.assertEqual(cm.exception.returncode, 3)
        self.assertEqual(cm.exception.output, "partial\n")

    def test_call_returns_exit_code(self):
        self.assertEqual(self.runner.call(util.Command(["sh", "-c", "exit 2"])), 2)

    def test_env_passed(self):
        out = self.runner.run(util.Command(["sh", "-c", "echo $DISTUP_TEST_VALUE"], env={"DISTUP_TEST_VALUE": "42"}))
        self.assertEqual(out, "42\n")

    def test_no_echo(self):
        runner = util.CommandRunner(writer=self.writer, echo_output=False)
        self.assertEqual(runner.run(util.Command(["echo", "quiet"])), "quiet\n")
        self.assertEqual(self.writer.getvalue(), "")

    def test_query(self):
        self.assertEqual(self.runner.query(["echo", "bookworm"]), "bookworm\n")
        self.assertEqual(self.writer.getvalue(), "")

    def test_query_failure(self):
        with self.assertRaises(subprocess.CalledProcessError):
            self.runner.query(["sh", "-c", "exit 1"])


class TestDryRunCommandRunner(TestCase):
    def setUp(self):
        self.writer = writers.BufferWriter()
        self.runner = util.CommandRunner(dry_run=True, writer=self.writer)

    def test_mutating_skipped(self):
        command = util.Command(["sh", "-c", "exit 1"])
        self.assertEqual(self.runner.run(command), "")
        self.assertEqual(self.runner.call(command), 0)
        self.assertEqual(self.runner.skipped, [command, command])
        self.assertEqual(self.runner.executed, [])
        self.assertEqual(self.writer.getvalue(), "Would execute: sh -c 'exit 1'\n" * 2)

    def test_read_only_executed(self):
        command = util.Command(["echo", "noble"], mutating=False)
        self.assertEqual(self.runner.run(command), "noble\n")
        self.assertEqual(self.runner.executed, [command])
        self.assertEqual(self.runner.skipped, [])
