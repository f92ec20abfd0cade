# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

import re
import typing


class DistroVersion:
    """
    Distribution release version representation class.

    Release versions are dotted sequences of numbers, e.g. "12", "3.20",
    "15.6" or "24.04". Versions are compared component by component as
    numbers, so "3.9" is lower than "3.20" and "15.10" is higher than "15.6".
    Missing trailing components are treated as zeros.
    """

    components: typing.Tuple[int, ...]

    def __init__(self, version: str):
        """Initialize a DistroVersion object."""
        version = version.strip()
        if version.startswith("v"):
            version = version[1:]

        if not re.fullmatch(r"\d+(\.\d+)*", version):
            raise ValueError(f"Cannot extract distribution version from {version!r}")

        self.components = tuple(int(part) for part in version.split("."))

    @property
    def major(self) -> int:
        return self.components[0]

    @property
    def minor(self) -> int:
        return self.components[1] if len(self.components) > 1 else 0

    def _to_tuple(self, length: int) -> typing.Tuple[int, ...]:
        return self.components + (0,) * (length - len(self.components))

    def _compare_tuples(self, other: "DistroVersion") -> typing.Tuple[typing.Tuple[int, ...], typing.Tuple[int, ...]]:
        length = max(len(self.components), len(other.components))
        return self._to_tuple(length), other._to_tuple(length)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self)!r})"

    def __str__(self) -> str:
        return ".".join(str(part) for part in self.components)

    def __hash__(self) -> int:
        significant = list(self.components)
        while len(significant) > 1 and significant[-1] == 0:
            significant.pop()
        return hash(tuple(significant))

    def __lt__(self, other) -> bool:
        left, right = self._compare_tuples(other)
        return left < right

    def __le__(self, other) -> bool:
        left, right = self._compare_tuples(other)
        return left <= right

    def __gt__(self, other) -> bool:
        return not self.__le__(other)

    def __ge__(self, other) -> bool:
        return not self.__lt__(other)

    def __eq__(self, other) -> bool:
        if not isinstance(other, DistroVersion):
            return NotImplemented
        left, right = self._compare_tuples(other)
        return left == right


def is_version_string(value: str) -> bool:
    try:
        DistroVersion(value)
        return True
    except ValueError:
        return False


def max_version(versions: typing.Iterable[str]) -> typing.Optional[str]:
    """Return the highest of the given version strings, or None for an empty input."""
    parsed = [DistroVersion(v) for v in versions]
    if not parsed:
        return None
    return str(max(parsed))
