# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import typing

from distup.common import dist
from distup.common.dist import DistributionId
from distup.upgrader import DistUpgrader


UpgraderClass = typing.Type[DistUpgrader]

_upgraders: typing.List[UpgraderClass] = []


def register_upgrader(upgrader: UpgraderClass) -> None:
    if upgrader not in _upgraders:
        _upgraders.append(upgrader)


def unregister_upgrader(upgrader: UpgraderClass) -> None:
    _upgraders.remove(upgrader)


def register_builtin_upgraders() -> None:
    from distup.distros import alpine, arch, debian, fedora, kali, opensuse, rhel_clone, ubuntu

    for upgrader in (
        ubuntu.UbuntuUpgrader,
        debian.DebianUpgrader,
        fedora.FedoraUpgrader,
        arch.ArchUpgrader,
        alpine.AlpineUpgrader,
        kali.KaliUpgrader,
        opensuse.OpenSuseUpgrader,
        rhel_clone.RhelCloneUpgrader,
    ):
        register_upgrader(upgrader)


def iter_upgraders(
    distro: typing.Optional[dist.Distro] = None,
    distribution: typing.Optional[DistributionId] = None,
) -> typing.Generator[UpgraderClass, None, None]:
    for u in _upgraders:
        instance = u()
        if (
            (distro is None or instance.supports(distro))
            and (distribution is None or instance.distribution == distribution)
        ):
            yield u
