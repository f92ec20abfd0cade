# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import json
import os
import subprocess
import typing
import urllib.error
import urllib.request

from distup.common import action, log


class MinFreeDiskSpaceViolation(typing.NamedTuple):
    """Information about a filesystem with insufficient free disk space."""
    dev: str
    """Device name."""
    req_bytes: int
    """Required space on the device (in bytes)."""
    avail_bytes: int
    """Available space on the device (in bytes)."""
    paths: typing.Set[str]
    """Paths belonging to this device."""


class AssertMinFreeDiskSpace(action.CheckAction):
    """Check if there's enough free disk space.

    Args:
        requirements: A dictionary mapping paths to minimum free disk
            space (in bytes) on the devices containing them.
        name: Name of the check.
    """
    violations: typing.List[MinFreeDiskSpaceViolation]
    """List of filesystems with insufficient free disk space."""

    def __init__(
        self,
        requirements: typing.Dict[str, int],
        name: str = "check if there's enough free disk space",
    ):
        self.requirements = requirements
        self.name = name
        self.description = ""
        self.violations = []

    def _update_description(self) -> None:
        """Update description of violations."""
        if not self.violations:
            self.description = ""
            return
        res = "There's not enough free disk space: "
        res += ", ".join(
            f"on filesystem {v.dev!r} for "
            f"{', '.join(repr(p) for p in sorted(v.paths))} "
            f"(need {v.req_bytes / 1024**3:.1f} GiB, "
            f"got {v.avail_bytes / 1024**3:.1f} GiB)" for v in self.violations
        )
        self.description = res

    def _do_check(self) -> bool:
        """Perform the check."""
        log.debug("Checking minimum free disk space")
        cmd = [
            "/bin/findmnt", "--output", "source,target,avail",
            "--bytes", "--json", "-T",
        ]
        self.violations = []
        filesystems: typing.Dict[str, dict] = {}
        for path, req in self.requirements.items():
            log.debug(f"Checking {path!r} minimum free disk space requirement of {req}")
            proc = subprocess.run(
                cmd + [path],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
                universal_newlines=True,
            )
            log.debug(
                f"Command {cmd + [path]} returned {proc.returncode}, "
                f"stdout: '{proc.stdout}', stderr: '{proc.stderr}'"
            )
            fs_data = json.loads(proc.stdout)["filesystems"][0]
            if fs_data["source"] not in filesystems:
                log.debug(f"Discovered new filesystem {fs_data}")
                fs_data["req"] = 0
                fs_data["paths"] = set()
                filesystems[fs_data["source"]] = fs_data
            filesystems[fs_data["source"]]["req"] += req
            filesystems[fs_data["source"]]["paths"].add(path)
        for dev, fs_data in filesystems.items():
            if fs_data["req"] > int(fs_data["avail"]):
                self.violations.append(
                    MinFreeDiskSpaceViolation(
                        dev,
                        fs_data["req"],
                        int(fs_data["avail"]),
                        fs_data["paths"],
                    )
                )
        self._update_description()
        return len(self.violations) == 0


class AssertNetworkReachable(action.CheckAction):
    hosts: typing.List[str]

    def __init__(self, hosts: typing.Iterable[str], timeout: int = 3):
        self.name = "check network connectivity"
        self.hosts = list(hosts)
        self.timeout = timeout
        self.description = ""

    def _ping(self, host: str) -> bool:
        try:
            res = subprocess.run(
                ["ping", "-c", "1", "-W", str(self.timeout), host],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            log.warn("The ping utility is not available")
            return False
        log.debug(f"ping {host} returned {res.returncode}")
        return res.returncode == 0

    def _do_check(self) -> bool:
        log.debug(f"Checking network connectivity by {self.hosts}")
        # One answering host is enough
        for host in self.hosts:
            if self._ping(host):
                self.description = f"Host {host} is reachable"
                return True

        self.description = "No network connectivity: none of the hosts {} answered. Check your internet connection.".format(
            ", ".join(self.hosts)
        )
        return False


class AssertBatteryCharged(action.CheckAction):
    min_charge: int
    power_supply_dir: str

    def __init__(self, min_charge: int = 50, power_supply_dir: str = "/sys/class/power_supply"):
        self.name = "check battery charge"
        self.description = ""
        self.blocking = False
        self.min_charge = min_charge
        self.power_supply_dir = power_supply_dir

    def _read(self, *path: str) -> typing.Optional[str]:
        full_path = os.path.join(self.power_supply_dir, *path)
        if not os.path.exists(full_path):
            return None
        with open(full_path) as f:
            return f.read().strip()

    def _do_check(self) -> bool:
        batteries = [b for b in ("BAT0", "BAT1") if os.path.isdir(os.path.join(self.power_supply_dir, b))]
        if not batteries:
            log.debug("No battery found")
            return True

        for adapter in ("AC", "ACAD"):
            online = self._read(adapter, "online")
            if online is not None:
                if online == "1":
                    log.debug(f"Power adapter {adapter} is online")
                    return True
                break

        capacity = self._read(batteries[0], "capacity")
        if capacity is None or not capacity.isdigit():
            log.debug(f"Unknown capacity of battery {batteries[0]}")
            return True

        if int(capacity) < self.min_charge:
            self.description = (
                f"Battery is at {capacity}% and not charging. Connect the power adapter, "
                f"an upgrade interrupted by power loss can leave the system unbootable."
            )
            return False
        return True


class AssertMirrorReachable(action.CheckAction):
    url: str

    def __init__(self, url: str, timeout: int = 10):
        self.name = "check mirror availability"
        self.description = ""
        self.blocking = False
        self.url = url
        self.timeout = timeout

    def _do_check(self) -> bool:
        log.debug(f"Checking mirror {self.url!r}")
        request = urllib.request.Request(self.url, method="HEAD")
        try:
            with urllib.request.urlopen(request, timeout=self.timeout):
                return True
        except (urllib.error.URLError, OSError) as ex:
            log.warn(f"Mirror {self.url!r} is not reachable: {ex}")
            self.description = f"Mirror {self.url} is not reachable: {ex}"
            return False
