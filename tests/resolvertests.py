# Copyright 2023-2025. WebPros International GmbH. All rights reserved.
import urllib.error
from unittest import mock

from distup.common import resolver
from tests.testcase import TestCase


LEAP_LISTING = """
<a href="./15.4/">15.4/</a>
<a href="./15.5/">15.5/</a>
<a href="./15.6/">15.6/</a>
<a href="./42.3/">42.3/</a>
<a href="./README">README</a>
"""

FEDORA_LISTING = """
<a href="38/">38/</a>
<a href="39/">39/</a>
<a href="40/">40/</a>
<a href="test/">test/</a>
"""

ALPINE_LATEST_RELEASES = """
-
  title: "Mini root filesystem"
  branch: v3.20
  version: 3.20.3
-
  title: "Netboot"
  branch: v3.20
  version: 3.20.3
"""

UBUNTU_META_RELEASE = """Dist: jammy
Name: Jammy Jellyfish
Version: 22.04.5 LTS
Supported: 1

Dist: noble
Name: Noble Numbat
Version: 24.04.1 LTS
Supported: 1
"""


class ExtractVersionsTests(TestCase):
    def test_legacy_excluded(self):
        versions = resolver.extract_versions(LEAP_LISTING, r'href="\./(\d+\.\d+)/"', exclude=r"^42\.")
        self.assertEqual(versions, ["15.4", "15.5", "15.6"])

    def test_latest_leap(self):
        self.assertEqual(resolver.latest_version(LEAP_LISTING, r'href="\./(\d+\.\d+)/"', exclude=r"^42\."), "15.6")

    def test_latest_without_exclusion(self):
        self.assertEqual(resolver.latest_version(LEAP_LISTING, r'href="\./(\d+\.\d+)/"'), "42.3")

    def test_latest_fedora(self):
        self.assertEqual(resolver.latest_version(FEDORA_LISTING, r'href="(\d+)/"'), "40")

    def test_duplicates_dropped(self):
        self.assertEqual(resolver.extract_versions(ALPINE_LATEST_RELEASES, r"version: (\d+\.\d+)"), ["3.20"])

    def test_multiline_anchor(self):
        self.assertEqual(resolver.latest_version(UBUNTU_META_RELEASE, r"^Version: (\d+\.\d+)"), "24.04")

    def test_no_versions(self):
        with self.assertRaises(resolver.ResolutionError):
            resolver.latest_version("<html></html>", r'href="(\d+)/"')


class VersionSourceTests(TestCase):
    def test_fixed_version_no_fetch(self):
        fetch = mock.Mock()
        source = resolver.FixedVersion("edge")
        self.assertEqual(resolver.resolve_target(source, "3.19", fetch), "edge")
        fetch.assert_not_called()
        self.assertFalse(source.discrete)

    def test_mirror_version(self):
        fetch = mock.Mock(return_value=LEAP_LISTING)
        source = resolver.MirrorVersion("https://mirror/leap/", r'href="\./(\d+\.\d+)/"', exclude=r"^42\.")
        self.assertEqual(resolver.resolve_target(source, "15.5", fetch), "15.6")
        fetch.assert_called_once_with("https://mirror/leap/")

    def test_mirror_version_url_callable(self):
        fetch = mock.Mock(return_value=ALPINE_LATEST_RELEASES)
        source = resolver.MirrorVersion(lambda: "https://mirror/x86_64/latest-releases.yaml", r"version: (\d+\.\d+)")
        self.assertEqual(source.resolve("3.19", fetch), "3.20")
        fetch.assert_called_once_with("https://mirror/x86_64/latest-releases.yaml")

    def test_mirror_pattern_missing(self):
        source = resolver.MirrorVersion("https://mirror/", r'href="(\d+)/"')
        with self.assertRaises(resolver.ResolutionError):
            source.resolve("40", lambda url: "Service unavailable")

    def test_next_major_version(self):
        source = resolver.NextMajorVersion()
        self.assertEqual(source.resolve("8.10", mock.Mock()), "9")
        with self.assertRaises(resolver.ResolutionError):
            source.resolve("unknown", mock.Mock())

    def test_is_upgrade_needed(self):
        discrete = resolver.MirrorVersion("https://mirror/", r"(\d+)")
        self.assertTrue(resolver.is_upgrade_needed(discrete, "15.5", "15.6"))
        self.assertFalse(resolver.is_upgrade_needed(discrete, "15.6", "15.6"))
        self.assertFalse(resolver.is_upgrade_needed(discrete, "41", "40"))
        self.assertTrue(resolver.is_upgrade_needed(discrete, "20240101", "rolling"))
        self.assertTrue(resolver.is_upgrade_needed(resolver.FixedVersion("sid"), "12", "sid"))


class FetchUrlTests(TestCase):
    @mock.patch("urllib.request.urlopen")
    def test_fetch(self, urlopen_mock):
        urlopen_mock.return_value.__enter__.return_value.read.return_value = b"Version: 24.04\n"
        self.assertEqual(resolver.fetch_url("https://changelogs.ubuntu.com/meta-release-lts"), "Version: 24.04\n")

    @mock.patch("urllib.request.urlopen", side_effect=urllib.error.URLError("no route to host"))
    def test_unreachable(self, urlopen_mock):
        with self.assertRaises(resolver.ResolutionError):
            resolver.fetch_url("https://dl.fedoraproject.org/pub/fedora/linux/releases/")
