# Copyright 2023-2025. WebPros International GmbH. All rights reserved.
import os
import shlex
import typing
from abc import ABC, abstractmethod
from enum import Enum
from functools import lru_cache


class DistributionId(str, Enum):
    UBUNTU = "ubuntu"
    DEBIAN = "debian"
    FEDORA = "fedora"
    ARCH = "arch"
    ALPINE = "alpine"
    KALI = "kali"
    OPENSUSE = "opensuse"
    RHEL_CLONE = "rhel-clone"

    def __str__(self) -> str:
        return self.value


class Distro(ABC):
    def __str__(self) -> str:
        return f"{self.name} {self.version}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(version={self.version!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Distro) and self.name == other.name and self.version == other.version

    def __hash__(self) -> int:
        return hash((self.name, self.version))

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def os_id(self) -> str:
        """ID field of os-release."""
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        pass

    @property
    def major_version(self) -> str:
        return self.version.split(".")[0]

    @property
    def rolling(self) -> bool:
        return False

    @property
    def distribution_id(self) -> typing.Optional[DistributionId]:
        return _distribution_ids.get(self.os_id)


class UnknownDistro(Distro):
    _name: str
    _version: str

    def __init__(
        self,
        name: str = "",
        version: str = "",
    ):
        super().__init__()
        self._name = name
        self._version = version

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self._name!r}, version={self._version!r})"

    @property
    def name(self) -> str:
        return self._name or "Unknown"

    @property
    def os_id(self) -> str:
        return ""

    @property
    def version(self) -> str:
        return self._version or "Unknown"


class StoredVersionMixin:
    _version: str
    codename: str

    def __init__(self, version: str, codename: str = ""):
        super().__init__()
        self._version = version
        self.codename = codename

    @property
    def version(self) -> str:
        return self._version


class Debian(StoredVersionMixin, Distro):
    @property
    def name(self) -> str:
        return "Debian"

    @property
    def os_id(self) -> str:
        return "debian"


class Ubuntu(StoredVersionMixin, Distro):
    @property
    def name(self) -> str:
        return "Ubuntu"

    @property
    def os_id(self) -> str:
        return "ubuntu"


class Kali(StoredVersionMixin, Distro):
    @property
    def name(self) -> str:
        return "Kali Linux"

    @property
    def os_id(self) -> str:
        return "kali"

    @property
    def rolling(self) -> bool:
        return True


class Fedora(StoredVersionMixin, Distro):
    @property
    def name(self) -> str:
        return "Fedora"

    @property
    def os_id(self) -> str:
        return "fedora"


class ArchLinux(StoredVersionMixin, Distro):
    def __init__(self, version: str = "rolling", codename: str = ""):
        super().__init__(version or "rolling", codename)

    @property
    def name(self) -> str:
        return "Arch Linux"

    @property
    def os_id(self) -> str:
        return "arch"

    @property
    def rolling(self) -> bool:
        return True


class Alpine(StoredVersionMixin, Distro):
    @property
    def name(self) -> str:
        return "Alpine Linux"

    @property
    def os_id(self) -> str:
        return "alpine"

    @property
    def major_version(self) -> str:
        # Alpine releases are identified by branch, e.g. 3.20 for 3.20.3
        return ".".join(self.version.split(".")[:2])


class OpenSuseLeap(StoredVersionMixin, Distro):
    @property
    def name(self) -> str:
        return "openSUSE Leap"

    @property
    def os_id(self) -> str:
        return "opensuse-leap"


class OpenSuseTumbleweed(StoredVersionMixin, Distro):
    @property
    def name(self) -> str:
        return "openSUSE Tumbleweed"

    @property
    def os_id(self) -> str:
        return "opensuse-tumbleweed"

    @property
    def rolling(self) -> bool:
        return True


class RockyLinux(StoredVersionMixin, Distro):
    @property
    def name(self) -> str:
        return "Rocky Linux"

    @property
    def os_id(self) -> str:
        return "rocky"


class AlmaLinux(StoredVersionMixin, Distro):
    @property
    def name(self) -> str:
        return "AlmaLinux"

    @property
    def os_id(self) -> str:
        return "almalinux"


_distro_mapping: typing.Dict[str, typing.Callable[[str, str], Distro]] = {
    "ubuntu": Ubuntu,
    "debian": Debian,
    "kali": Kali,
    "fedora": Fedora,
    "arch": ArchLinux,
    "alpine": Alpine,
    "opensuse-leap": OpenSuseLeap,
    "opensuse-tumbleweed": OpenSuseTumbleweed,
    "rocky": RockyLinux,
    "almalinux": AlmaLinux,
}

_distribution_ids: typing.Dict[str, DistributionId] = {
    "ubuntu": DistributionId.UBUNTU,
    "debian": DistributionId.DEBIAN,
    "kali": DistributionId.KALI,
    "fedora": DistributionId.FEDORA,
    "arch": DistributionId.ARCH,
    "alpine": DistributionId.ALPINE,
    "opensuse-leap": DistributionId.OPENSUSE,
    "opensuse-tumbleweed": DistributionId.OPENSUSE,
    "rocky": DistributionId.RHEL_CLONE,
    "almalinux": DistributionId.RHEL_CLONE,
}

# Checked when os-release doesn't name a known distribution
_marker_files: typing.List[typing.Tuple[str, str]] = [
    ("etc/rocky-release", "rocky"),
    ("etc/almalinux-release", "almalinux"),
    ("etc/arch-release", "arch"),
    ("etc/alpine-release", "alpine"),
    ("etc/fedora-release", "fedora"),
]


def parse_os_release(content: str) -> typing.Dict[str, str]:
    res = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        try:
            parts = shlex.split(value)
            value = parts[0] if parts else ""
        except ValueError:
            value = value.strip().strip('"\'')
        res[key.strip()] = value
    return res


def _read_os_release(root: str) -> typing.Dict[str, str]:
    for path in ("etc/os-release", "usr/lib/os-release"):
        full_path = os.path.join(root, path)
        if os.path.exists(full_path):
            with open(full_path) as f:
                return parse_os_release(f.read())
    return {}


def _read_marker_version(root: str, marker: str) -> str:
    with open(os.path.join(root, marker)) as f:
        content = f.read().strip()
    for word in content.split():
        if word[0].isdigit():
            return word
    return ""


def detect_distro(root: str = "/") -> Distro:
    os_release = _read_os_release(root)
    os_id = os_release.get("ID", "")
    version = os_release.get("VERSION_ID", "")
    codename = os_release.get("VERSION_CODENAME", "")

    if os_id in _distro_mapping:
        return _distro_mapping[os_id](version, codename)

    # Old openSUSE releases use "opensuse" as ID for both variants
    if os_id == "opensuse" or "suse" in os_release.get("ID_LIKE", "").split():
        if "tumbleweed" in os_release.get("NAME", "").lower():
            return OpenSuseTumbleweed(version)
        return OpenSuseLeap(version)

    for marker, marker_id in _marker_files:
        if os.path.exists(os.path.join(root, marker)):
            return _distro_mapping[marker_id](version or _read_marker_version(root, marker), codename)

    return UnknownDistro(os_release.get("NAME", os_id), version)


@lru_cache(maxsize=4)
def get_distro(root: str = "/") -> Distro:
    return detect_distro(root)
