# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import re
import socket
import typing
import urllib.error
import urllib.request
from abc import ABC, abstractmethod

from . import log, version


DEFAULT_FETCH_TIMEOUT = 30


class ResolutionError(Exception):
    """The target version can't be determined."""
    pass


def fetch_url(url: str, timeout: int = DEFAULT_FETCH_TIMEOUT) -> str:
    log.debug(f"Fetching {url!r}")
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            return response.read().decode("utf-8", errors="replace")
    except urllib.error.URLError as ex:
        raise ResolutionError(f"Unable to download {url!r}: {ex}") from ex
    except (socket.timeout, OSError) as ex:
        raise ResolutionError(f"Unable to download {url!r}: {ex}") from ex


def extract_versions(
    content: str,
    pattern: str,
    exclude: typing.Optional[str] = None,
) -> typing.List[str]:
    """
    Extract version tokens from a mirror listing.

    pattern must contain one capturing group matching the version. Versions
    matching the exclude regular expression are dropped, e.g. "^42\\." drops
    legacy openSUSE Leap 42.x releases from the Leap directory listing.
    """
    found = re.findall(pattern, content, re.MULTILINE)
    res = []
    for token in found:
        if exclude is not None and re.search(exclude, token):
            log.debug(f"Version {token!r} is excluded by {exclude!r}")
            continue
        if not version.is_version_string(token):
            continue
        if token not in res:
            res.append(token)
    return res


def latest_version(
    content: str,
    pattern: str,
    exclude: typing.Optional[str] = None,
) -> str:
    versions = extract_versions(content, pattern, exclude)
    log.debug(f"Versions found: {versions}")
    latest = version.max_version(versions)
    if latest is None:
        raise ResolutionError(f"No versions matching {pattern!r} found")
    return latest


class VersionSource(ABC):
    """How the target version of a channel is determined."""

    @property
    def discrete(self) -> bool:
        """Whether the source yields comparable release numbers."""
        return True

    @abstractmethod
    def resolve(self, current_version: str, fetch: typing.Callable[[str], str]) -> str:
        pass


class FixedVersion(VersionSource):
    """Rolling channels are identified by a sentinel, no network lookup is needed."""
    sentinel: str

    def __init__(self, sentinel: str):
        self.sentinel = sentinel

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.sentinel!r})"

    @property
    def discrete(self) -> bool:
        return False

    def resolve(self, current_version: str, fetch: typing.Callable[[str], str]) -> str:
        return self.sentinel


class MirrorVersion(VersionSource):
    """The latest release is scraped from a mirror listing."""
    url: typing.Union[str, typing.Callable[[], str]]
    pattern: str
    exclude: typing.Optional[str]

    def __init__(
        self,
        url: typing.Union[str, typing.Callable[[], str]],
        pattern: str,
        exclude: typing.Optional[str] = None,
    ):
        self.url = url
        self.pattern = pattern
        self.exclude = exclude

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(url={self.url!r}, pattern={self.pattern!r}, exclude={self.exclude!r})"

    def get_url(self) -> str:
        return self.url() if callable(self.url) else self.url

    def resolve(self, current_version: str, fetch: typing.Callable[[str], str]) -> str:
        url = self.get_url()
        content = fetch(url)
        try:
            return latest_version(content, self.pattern, self.exclude)
        except ResolutionError as ex:
            raise ResolutionError(f"Unable to determine the latest version from {url!r}: {ex}") from ex


class NextMajorVersion(VersionSource):
    """The release following the current major one, used for in-place major upgrades."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def resolve(self, current_version: str, fetch: typing.Callable[[str], str]) -> str:
        try:
            return str(version.DistroVersion(current_version).major + 1)
        except ValueError as ex:
            raise ResolutionError(f"Unable to determine the next major version after {current_version!r}") from ex


def resolve_target(
    source: VersionSource,
    current_version: str,
    fetch: typing.Callable[[str], str] = fetch_url,
) -> str:
    target = source.resolve(current_version, fetch)
    log.info(f"Resolved target version {target!r} by {source!r}")
    return target


def is_upgrade_needed(source: VersionSource, current_version: str, target_version: str) -> bool:
    """Check whether the target is newer than the current version. Sentinel targets always need an upgrade."""
    if not source.discrete:
        return True
    try:
        return version.DistroVersion(target_version) > version.DistroVersion(current_version)
    except ValueError:
        log.debug(f"Can't compare {current_version!r} and {target_version!r}, assuming the upgrade is needed")
        return True
