# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

from distup.common import repos
from distup.common.dist import DistributionId
from tests.testcase import TestCase


class AlpineRepositoriesTests(TestCase):
    def test_stable(self):
        content = repos.render(DistributionId.ALPINE, "stable", "3.20", "https://mirror.example/alpine")
        self.assertEqual(content, (
            "https://mirror.example/alpine/v3.20/main\n"
            "https://mirror.example/alpine/v3.20/community\n"
        ))

    def test_stable_version_with_prefix(self):
        content = repos.render("alpine", "stable", "v3.20")
        self.assertIn(repos.ALPINE_MIRROR + "/v3.20/main\n", content)
        self.assertNotIn("vv3.20", content)

    def test_edge_ignores_version(self):
        content = repos.render(DistributionId.ALPINE, "edge", "edge")
        self.assertEqual(content.splitlines(), [
            repos.ALPINE_MIRROR + "/edge/main",
            repos.ALPINE_MIRROR + "/edge/community",
            repos.ALPINE_MIRROR + "/edge/testing",
        ])
        self.assertEqual(content, repos.render(DistributionId.ALPINE, "edge", "3.20"))


class DebianRepositoriesTests(TestCase):
    def _deb_lines(self, content):
        return [line for line in content.splitlines() if line.startswith("deb ")]

    def test_stable(self):
        lines = self._deb_lines(repos.render(DistributionId.DEBIAN, "stable", "stable"))
        self.assertEqual(lines, [
            f"deb {repos.DEBIAN_MIRROR} stable {repos.APT_COMPONENTS}",
            f"deb {repos.DEBIAN_MIRROR} stable-updates {repos.APT_COMPONENTS}",
            f"deb {repos.DEBIAN_SECURITY_MIRROR} stable-security {repos.APT_COMPONENTS}",
        ])

    def test_sid_has_single_suite(self):
        lines = self._deb_lines(repos.render(DistributionId.DEBIAN, "sid", "sid"))
        self.assertEqual(lines, [f"deb {repos.DEBIAN_MIRROR} sid {repos.APT_COMPONENTS}"])

    def test_unknown_channel(self):
        with self.assertRaises(ValueError):
            repos.render(DistributionId.DEBIAN, "oldstable", "oldstable")


class KaliRepositoriesTests(TestCase):
    def test_rolling(self):
        content = repos.render(DistributionId.KALI, "rolling", "kali-rolling")
        self.assertIn(f"deb {repos.KALI_MIRROR} kali-rolling {repos.APT_COMPONENTS}\n", content)
        self.assertNotIn("kali-bleeding-edge", content)

    def test_bleeding_edge_keeps_rolling(self):
        content = repos.render(DistributionId.KALI, "bleeding-edge", "kali-bleeding-edge")
        self.assertIn(" kali-rolling ", content)
        self.assertIn(" kali-bleeding-edge ", content)


class OpenSuseRepositoriesTests(TestCase):
    def _sections(self, content):
        return [line for line in content.splitlines() if line.startswith("[")]

    def test_leap(self):
        content = repos.render(DistributionId.OPENSUSE, "leap", "15.6")
        self.assertEqual(self._sections(content), [
            "[repo-oss]", "[repo-non-oss]", "[repo-update]", "[repo-backports-update]", "[repo-sle-update]",
        ])
        self.assertIn(f"baseurl={repos.OPENSUSE_MIRROR}/distribution/leap/15.6/repo/oss/\n", content)

    def test_old_leap_without_sle_repositories(self):
        content = repos.render(DistributionId.OPENSUSE, "leap", "15.2")
        self.assertEqual(self._sections(content), ["[repo-oss]", "[repo-non-oss]", "[repo-update]"])

    def test_tumbleweed(self):
        content = repos.render(DistributionId.OPENSUSE, "tumbleweed", "tumbleweed")
        self.assertEqual(self._sections(content), ["[repo-oss]", "[repo-non-oss]", "[repo-update]"])
        self.assertIn(f"baseurl={repos.OPENSUSE_MIRROR}/tumbleweed/repo/oss/\n", content)

    def test_unknown_channel(self):
        with self.assertRaises(ValueError):
            repos.render(DistributionId.OPENSUSE, "factory", "factory")


class NoRendererTests(TestCase):
    def test_handled_by_upgrade_helpers(self):
        for distribution in (DistributionId.UBUNTU, DistributionId.FEDORA, DistributionId.ARCH):
            self.assertFalse(repos.has_renderer(distribution))
            self.assertIsNone(repos.render(distribution, "stable", "1"))
