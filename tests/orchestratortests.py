# Copyright 2023-2025. WebPros International GmbH. All rights reserved.
import os
import subprocess
import tempfile
import typing
from unittest import mock

from distup import registry
from distup.common import action, dist, prompt, snapshot
from distup.common.dist import DistributionId
from distup.context import Context
from distup.distros import debian, fedora
from distup.orchestrator import Orchestrator
from distup.state import FLOW_STATES, State
from distup.upgrader import UpgradePlan
from tests.testcase import FakeRunner, TestCase


DIST_UPGRADE_ARGS = tuple(debian.AptAdapter().upgrade_commands(
    UpgradePlan(DistributionId.DEBIAN, "stable", "12", "stable", False)
)[0].args)

ORIGINAL_SOURCES = "deb http://deb.debian.org/debian bookworm main\n"

# One listing answering the release queries of every mirror
MIRROR_LISTINGS = (
    "version: 3.99\n"
    '<a href="99/">99/</a>\n'
    '<a href="./99.9/">99.9/</a>\n'
    "Version: 99.04 LTS\n"
)

DRY_RUN_DISTROS = {
    DistributionId.UBUNTU: dist.Ubuntu("22.04"),
    DistributionId.DEBIAN: dist.Debian("12"),
    DistributionId.FEDORA: dist.Fedora("39"),
    DistributionId.ARCH: dist.ArchLinux(),
    DistributionId.ALPINE: dist.Alpine("3.19.1"),
    DistributionId.KALI: dist.Kali("2024.1"),
    DistributionId.OPENSUSE: dist.OpenSuseLeap("15.5"),
    DistributionId.RHEL_CLONE: dist.RockyLinux("8.10"),
}


class FixedCheck(action.CheckAction):
    def __init__(self, passed: bool, blocking: bool = True):
        self.name = f"fixed check {passed}"
        self.description = "" if passed else "the check is set to fail"
        self.passed = passed
        self.blocking = blocking

    def _do_check(self) -> bool:
        return self.passed


class LocalDebianUpgrader(debian.DebianUpgrader):
    """Works with the repository configuration in a temporary directory."""

    def __init__(self, root: str, checks: typing.Optional[typing.List[action.CheckAction]] = None):
        super().__init__()
        self.root = root
        self.checks = checks if checks is not None else []

    @property
    def sources_list(self) -> str:
        return os.path.join(self.root, "sources.list")

    @property
    def config_paths(self) -> typing.List[str]:
        return [self.sources_list, os.path.join(self.root, "sources.list.d")]

    def repository_file(self, plan: UpgradePlan) -> typing.Optional[str]:
        return self.sources_list

    def get_check_actions(self, ctx: Context) -> typing.List[action.CheckAction]:
        return self.checks


class OrchestratorTestCase(TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.state_dir = os.path.join(self.tmp.name, "state")
        self.upgrader = LocalDebianUpgrader(self.tmp.name)
        with open(self.upgrader.sources_list, "w") as f:
            f.write(ORIGINAL_SOURCES)

    def tearDown(self):
        self.tmp.cleanup()

    def _make_context(self, runner=None, confirmation=None, **kwargs) -> Context:
        dry_run = kwargs.get("dry_run", False)
        self.runner = runner if runner is not None else FakeRunner(dry_run=dry_run)
        kwargs.setdefault("no_snapshot", True)
        return Context(
            state_dir=self.state_dir,
            hooks_dir=os.path.join(self.tmp.name, "hooks.d"),
            sudo_user="",
            snapshot_record_dir=self.tmp.name,
            require_root=False,
            writer=self.runner.writer,
            runner=self.runner,
            confirmation=confirmation if confirmation is not None else prompt.AutoConfirmation(),
            fetch=mock.Mock(side_effect=AssertionError("unexpected fetch")),
            **kwargs
        )

    def _read_sources(self) -> str:
        with open(self.upgrader.sources_list) as f:
            return f.read()

    def _mutating(self):
        return [command for command in self.runner.executed if command.mutating]


class TestSuccessfulUpgrade(OrchestratorTestCase):
    def test_all_states_passed(self):
        ctx = self._make_context(assume_yes=True)
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "sid").run()

        self.assertEqual(result.state, State.COMPLETED)
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(
            result.history,
            [State.INIT, State.DETECTING, State.PREFLIGHT_CHECKING, State.SNAPSHOT_PROMPTING]
            + list(FLOW_STATES) + [State.COMPLETED],
        )
        self.assertIn(" sid ", self._read_sources())
        self.assertIn(list(DIST_UPGRADE_ARGS), self.runner.executed_args)
        self.assertEqual(result.plan.target_version, "sid")
        self.assertEqual(set(result.hook_summaries.keys()), {"pre", "post"})

    def test_backup_before_rewrite(self):
        ctx = self._make_context(assume_yes=True)
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "testing").run()

        sources_backup = [r for r in result.backups if r.original_path == self.upgrader.sources_list]
        self.assertEqual(len(sources_backup), 1)
        with open(sources_backup[0].backup_path) as f:
            self.assertEqual(f.read(), ORIGINAL_SOURCES)
        self.assertTrue(os.path.exists(os.path.join(self.state_dir, "backups.json")))

    def test_yes_never_reboots(self):
        ctx = self._make_context(assume_yes=True)
        Orchestrator(self.upgrader, dist.Debian("12"), ctx, "stable").run()
        self.assertNotIn(["reboot"], self.runner.executed_args)
        self.assertIn("reboot", self.runner.output)

    def test_reboot_confirmed(self):
        ctx = self._make_context()
        Orchestrator(self.upgrader, dist.Debian("12"), ctx, "stable").run()
        self.assertEqual(self.runner.executed_args[-1], ["reboot"])

    def test_channel_chosen_interactively(self):
        confirmation = prompt.AutoConfirmation(choice="testing")
        ctx = self._make_context(confirmation=confirmation, assume_yes=True)
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx).run()
        self.assertEqual(result.plan.channel, "testing")
        self.assertIn("Select the Debian upgrade channel:", confirmation.questions)


class TestDryRun(OrchestratorTestCase):
    def test_nothing_changed(self):
        ctx = self._make_context(dry_run=True)
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "sid").run()

        self.assertEqual(result.state, State.COMPLETED)
        self.assertEqual(self._read_sources(), ORIGINAL_SOURCES)
        self.assertEqual(self._mutating(), [])
        self.assertFalse(os.path.exists(self.state_dir))
        self.assertEqual(os.listdir(self.tmp.name), ["sources.list"])
        self.assertIn("Would execute: DEBIAN_FRONTEND=noninteractive apt-get dist-upgrade -y", self.runner.output)
        self.assertIn(f"Would write to {self.upgrader.sources_list}:", self.runner.output)
        self.assertIn("Dry run finished", self.runner.output)

    def test_plan_not_confirmed(self):
        confirmation = prompt.AutoConfirmation(answer=False)
        ctx = self._make_context(dry_run=True, confirmation=confirmation)
        Orchestrator(self.upgrader, dist.Debian("12"), ctx, "stable").run()
        self.assertNotIn("Continue with upgrade?", confirmation.questions)

    @mock.patch("distup.distros.alpine.get_arch", return_value="x86_64")
    def test_every_distribution_and_channel(self, get_arch_mock):
        registry.register_builtin_upgraders()
        for upgrader_class in registry.iter_upgraders():
            upgrader = upgrader_class()
            distro = DRY_RUN_DISTROS[upgrader.distribution]
            for channel in upgrader.get_channel_names():
                with self.subTest(distribution=str(upgrader.distribution), channel=channel):
                    ctx = self._make_context(dry_run=True, skip_checks=True)
                    ctx.fetch = mock.Mock(return_value=MIRROR_LISTINGS)
                    result = Orchestrator(upgrader_class.create(distro, ctx), distro, ctx, channel).run()

                    self.assertEqual(result.state, State.COMPLETED, result.error)
                    self.assertEqual(self._mutating(), [])
                    self.assertFalse(os.path.exists(self.state_dir))
                    self.assertIn("Dry run finished", self.runner.output)


class TestPreflight(OrchestratorTestCase):
    def test_blocking_failure(self):
        self.upgrader.checks = [FixedCheck(True), FixedCheck(False)]
        ctx = self._make_context()
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "sid").run()

        self.assertEqual(result.state, State.ABORTED)
        self.assertEqual(result.exit_code, 1)
        self.assertNotIn(State.BACKING_UP, result.history)
        self.assertEqual(self.runner.executed, [])
        self.assertEqual(self._read_sources(), ORIGINAL_SOURCES)
        self.assertIn("[fail] fixed check False", self.runner.output)

    def test_warning_declined(self):
        self.upgrader.checks = [FixedCheck(False, blocking=False)]
        ctx = self._make_context(confirmation=prompt.AutoConfirmation(answer=False))
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "sid").run()
        self.assertEqual(result.state, State.ABORTED)
        self.assertNotIn(State.BACKING_UP, result.history)

    def test_warning_accepted(self):
        self.upgrader.checks = [FixedCheck(False, blocking=False)]
        ctx = self._make_context(assume_yes=True)
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "sid").run()
        self.assertEqual(result.state, State.COMPLETED)


class TestRollback(OrchestratorTestCase):
    def test_failed_upgrade_restores_configuration(self):
        runner = FakeRunner(outputs={
            DIST_UPGRADE_ARGS: subprocess.CalledProcessError(100, list(DIST_UPGRADE_ARGS)),
        })
        ctx = self._make_context(runner=runner, assume_yes=True)
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "sid").run()

        self.assertEqual(result.state, State.ABORTED)
        self.assertEqual(result.exit_code, 1)
        self.assertEqual(result.history[-3:], [State.UPGRADING, State.ROLLING_BACK, State.ABORTED])
        self.assertNotIn(State.CLEANING_UP, result.history)
        self.assertEqual(self._read_sources(), ORIGINAL_SOURCES)
        self.assertIn("upgrade distribution", result.error)
        # The package index is synchronized with the restored configuration
        self.assertEqual(runner.executed_args[-1], ["apt-get", "update"])
        self.assertIn("restored from the backup", runner.output)

    def test_failed_refresh_restores_configuration(self):
        runner = FakeRunner()
        ctx = self._make_context(runner=runner, assume_yes=True)
        with mock.patch.object(debian.AptAdapter, "refresh_commands", side_effect=OSError("no apt-get")):
            result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "stable").run()

        self.assertEqual(result.state, State.ABORTED)
        self.assertIn(State.ROLLING_BACK, result.history)
        self.assertEqual(self._read_sources(), ORIGINAL_SOURCES)


class TestNothingToDo(OrchestratorTestCase):
    def test_already_latest(self):
        ctx = self._make_context()
        ctx.fetch = mock.Mock(return_value='<a href="39/">39/</a><a href="40/">40/</a>')
        result = Orchestrator(fedora.FedoraUpgrader(), dist.Fedora("40"), ctx, "stable").run()

        self.assertEqual(result.state, State.COMPLETED)
        self.assertFalse(result.cancelled)
        self.assertEqual(self.runner.executed, [])
        self.assertNotIn(State.BACKING_UP, result.history)
        self.assertIn("40", self.runner.output)

    def test_second_run_does_nothing(self):
        ctx = self._make_context()
        ctx.fetch = mock.Mock(return_value='<a href="39/">39/</a><a href="40/">40/</a>')
        upgrader = fedora.FedoraUpgrader()

        for _ in range(2):
            self.runner.executed.clear()
            result = Orchestrator(upgrader, dist.Fedora("40"), ctx, "stable").run()
            self.assertEqual(result.state, State.COMPLETED)
            self.assertEqual(self.runner.executed, [])

        self.assertEqual(ctx.fetch.call_count, 2)
        self.assertFalse(os.path.exists(self.state_dir))


class TestCancelAndAbort(OrchestratorTestCase):
    def test_menu_quit(self):
        ctx = self._make_context(confirmation=prompt.AutoConfirmation(choice=None))
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx).run()
        self.assertEqual(result.state, State.COMPLETED)
        self.assertTrue(result.cancelled)
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(self.runner.executed, [])

    def test_plan_declined(self):
        ctx = self._make_context(confirmation=prompt.AutoConfirmation(answer=False))
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "sid").run()
        self.assertTrue(result.cancelled)
        self.assertEqual(self._read_sources(), ORIGINAL_SOURCES)
        self.assertFalse(os.path.exists(self.state_dir))

    def test_invalid_channel(self):
        ctx = self._make_context()
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "oldstable").run()
        self.assertEqual(result.state, State.ABORTED)
        self.assertIn("oldstable", result.error)
        self.assertEqual(result.history, [State.INIT, State.DETECTING, State.ABORTED])

    def test_invalid_menu_choice(self):
        ctx = self._make_context(confirmation=prompt.AutoConfirmation(choice="7"))
        result = Orchestrator(self.upgrader, dist.Debian("12"), ctx).run()
        self.assertEqual(result.state, State.ABORTED)

    def test_wrong_distribution(self):
        ctx = self._make_context()
        result = Orchestrator(self.upgrader, dist.Ubuntu("22.04"), ctx, "sid").run()
        self.assertEqual(result.state, State.ABORTED)
        self.assertIn("Ubuntu 22.04", result.error)

    def test_root_required(self):
        ctx = self._make_context()
        ctx.require_root = True
        with mock.patch("os.geteuid", return_value=1000):
            result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "sid").run()
        self.assertEqual(result.state, State.ABORTED)
        self.assertIn("root", result.error)


class TestSnapshot(OrchestratorTestCase):
    def test_snapshot_created(self):
        runner = FakeRunner(outputs={
            ("snapper", "-c", "root", "create", "--type", "pre", "--print-number", "--description",
             snapshot.SNAPSHOT_DESCRIPTION): "7\n",
        })
        ctx = self._make_context(runner=runner, assume_yes=True, no_snapshot=False)
        with mock.patch("distup.common.snapshot.detect_snapshot_tool", return_value=snapshot.SnapshotTool.SNAPPER):
            result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "stable").run()

        self.assertEqual(result.snapshot, snapshot.SnapshotHandle(snapshot.SnapshotTool.SNAPPER, "7"))
        with open(os.path.join(self.tmp.name, "distup-snapper-snapshot")) as f:
            self.assertEqual(f.read(), "7\n")

    def test_snapshot_failure_does_not_stop(self):
        runner = FakeRunner(exit_codes={("snapper", "-c", "root", "list"): 1})
        ctx = self._make_context(runner=runner, assume_yes=True, no_snapshot=False)
        with mock.patch("distup.common.snapshot.detect_snapshot_tool", return_value=snapshot.SnapshotTool.SNAPPER):
            result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "stable").run()

        self.assertEqual(result.state, State.COMPLETED)
        self.assertIsNone(result.snapshot)
        self.assertIn("unable to create snapper snapshot", runner.output)

    def test_no_snapshot_tool(self):
        ctx = self._make_context(assume_yes=True, no_snapshot=False)
        with mock.patch("distup.common.snapshot.detect_snapshot_tool", return_value=snapshot.SnapshotTool.NONE):
            result = Orchestrator(self.upgrader, dist.Debian("12"), ctx, "stable").run()
        self.assertEqual(result.state, State.COMPLETED)
        self.assertIsNone(result.snapshot)
