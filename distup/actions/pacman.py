# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import subprocess
import typing
import xml.etree.ElementTree as ElementTree

from distup.common import action, files, log, resolver, util


ARCH_NEWS_FEED_URL = "https://archlinux.org/feeds/news/"


def parse_news_titles(feed: str, limit: int = 5) -> typing.List[str]:
    root = ElementTree.fromstring(feed)
    return [item.findtext("title", "").strip() for item in root.iter("item")][:limit]


class ShowArchNews(action.ActiveAction):
    """Show the latest Arch Linux news, they announce upgrades requiring manual intervention."""

    def __init__(self, runner: util.CommandRunner, fetch: typing.Callable[[str], str] = resolver.fetch_url):
        self.name = "show Arch Linux news"
        self.description = "Show recent headlines of archlinux.org/news"
        self.runner = runner
        self.fetch = fetch

    def _prepare_action(self) -> action.ActionResult:
        try:
            titles = parse_news_titles(self.fetch(ARCH_NEWS_FEED_URL))
        except (resolver.ResolutionError, ElementTree.ParseError) as ex:
            log.warn(f"Unable to get Arch Linux news: {ex}")
            return action.ActionResult(action.ActionState.SKIPPED, "Unable to fetch news. Check archlinux.org/news manually")

        self.runner.writer.write("Recent Arch Linux news (check archlinux.org/news for details):\n")
        for title in titles:
            self.runner.writer.write(f"  - {title}\n")
        return action.ActionResult()

    def _revert_action(self) -> action.ActionResult:
        return action.ActionResult()


class ReportOrphanPackages(action.ActiveAction):
    orphans: typing.List[str]

    def __init__(self, runner: util.CommandRunner):
        self.name = "report orphaned packages"
        self.description = "List packages installed as dependencies which are not required anymore"
        self.runner = runner
        self.orphans = []

    def _prepare_action(self) -> action.ActionResult:
        try:
            out = self.runner.query(["pacman", "-Qtdq"])
        except subprocess.CalledProcessError as ex:
            # pacman returns 1 when there are no orphans
            out = ex.stdout or ""
        self.orphans = [line.strip() for line in out.splitlines() if line.strip()]

        if not self.orphans:
            log.info("No orphaned packages found")
            return action.ActionResult()

        self.runner.writer.write(f"Found {len(self.orphans)} orphaned package(s):\n")
        for package in self.orphans:
            self.runner.writer.write(f"  {package}\n")
        self.runner.writer.write("Remove them with: pacman -Rns $(pacman -Qtdq)\n")
        return action.ActionResult()

    def _revert_action(self) -> action.ActionResult:
        return action.ActionResult()


class ReportConfigurationChanges(action.ActiveAction):
    found: typing.List[str]

    def __init__(self, runner: util.CommandRunner, config_dir: str = "/etc"):
        self.name = "report .pacnew and .pacsave files"
        self.description = f"List configuration files in {config_dir} which need to be merged manually"
        self.runner = runner
        self.config_dir = config_dir
        self.found = []

    def _prepare_action(self) -> action.ActionResult:
        self.found = files.find_files_case_insensitive(self.config_dir, ["*.pacnew", "*.pacsave"], recursive=True)
        if not self.found:
            log.info("No .pacnew/.pacsave files found")
            return action.ActionResult()

        self.runner.writer.write(f"Found {len(self.found)} configuration file(s) needing attention:\n")
        for path in self.found:
            self.runner.writer.write(f"  {path}\n")
        self.runner.writer.write("Merge them with pacdiff (from pacman-contrib)\n")
        return action.ActionResult()

    def _revert_action(self) -> action.ActionResult:
        return action.ActionResult()
