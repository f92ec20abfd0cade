# Copyright 2023-2025. WebPros International GmbH. All rights reserved.
import os
import stat
import tempfile

from distup.common import files
from tests.testcase import TestCase


class TestRewriteFile(TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "repositories")

    def tearDown(self):
        self.tmp.cleanup()

    def test_new_file(self):
        files.rewrite_file(self.path, "content\n")
        with open(self.path) as f:
            self.assertEqual(f.read(), "content\n")
        self.assertFalse(os.path.exists(self.path + ".next"))

    def test_mode_preserved(self):
        with open(self.path, "w") as f:
            f.write("old\n")
        os.chmod(self.path, 0o600)
        files.rewrite_file(self.path, "new\n")
        self.assertEqual(stat.S_IMODE(os.stat(self.path).st_mode), 0o600)
        with open(self.path) as f:
            self.assertEqual(f.read(), "new\n")

    def test_json_round_trip(self):
        files.rewrite_json_file(self.path, {"actions": [1, 2]})
        self.assertEqual(files.read_json_file(self.path), {"actions": [1, 2]})

    def test_json_default(self):
        self.assertEqual(files.read_json_file(self.path, default={"a": 1}), {"a": 1})


class TestCopyAndReplace(TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = os.path.join(self.tmp.name, "sources.list.d")
        os.mkdir(self.dir)
        with open(os.path.join(self.dir, "a.list"), "w") as f:
            f.write("deb a\n")

    def tearDown(self):
        self.tmp.cleanup()

    def test_copy_directory(self):
        copy = self.dir + ".bak"
        files.copy_atomically(self.dir, copy)
        self.assertEqual(os.listdir(copy), ["a.list"])
        self.assertFalse(os.path.exists(copy + ".next"))

    def test_replace_directory(self):
        copy = self.dir + ".bak"
        files.copy_atomically(self.dir, copy)
        with open(os.path.join(self.dir, "b.list"), "w") as f:
            f.write("deb b\n")

        files.replace_path(copy, self.dir)
        self.assertEqual(sorted(os.listdir(self.dir)), ["a.list"])
        self.assertFalse(os.path.exists(self.dir + ".prev"))
        self.assertFalse(os.path.exists(self.dir + ".next"))
        # The backup stays in place
        self.assertTrue(os.path.exists(copy))

    def test_remove_path(self):
        files.remove_path(self.dir)
        self.assertFalse(os.path.exists(self.dir))
        files.remove_path(self.dir)


class TestFindFiles(TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        os.makedirs(os.path.join(self.tmp.name, "pacman.d"))
        for name in ("pacman.conf.pacnew", "pacman.d/mirrorlist.PACSAVE", "hosts"):
            with open(os.path.join(self.tmp.name, name), "w") as f:
                f.write("")

    def tearDown(self):
        self.tmp.cleanup()

    def test_recursive(self):
        found = files.find_files_case_insensitive(self.tmp.name, ["*.pacnew", "*.pacsave"], recursive=True)
        self.assertEqual(found, [
            os.path.join(self.tmp.name, "pacman.conf.pacnew"),
            os.path.join(self.tmp.name, "pacman.d/mirrorlist.PACSAVE"),
        ])

    def test_not_recursive(self):
        found = files.find_files_case_insensitive(self.tmp.name, "*.pacsave")
        self.assertEqual(found, [])

    def test_missing_dir(self):
        self.assertEqual(files.find_files_case_insensitive(os.path.join(self.tmp.name, "none"), "*"), [])


class TestConfigVariables(TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "release-upgrades")
        with open(self.path, "w") as f:
            f.write("# comment\n[DEFAULT]\nPrompt=lts\n")

    def tearDown(self):
        self.tmp.cleanup()

    def test_get(self):
        self.assertEqual(files.cnf_get_section_variable(self.path, "DEFAULT", "Prompt"), "lts")
        self.assertIsNone(files.cnf_get_section_variable(self.path, "DEFAULT", "Missing"))

    def test_set(self):
        files.cnf_set_section_variable(self.path, "DEFAULT", "Prompt", "normal")
        self.assertEqual(files.cnf_get_section_variable(self.path, "DEFAULT", "Prompt"), "normal")
        with open(self.path) as f:
            self.assertEqual(f.read(), "# comment\n[DEFAULT]\nPrompt=normal\n")
