"""Helpers for dealing with mod version numbers."""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Tuple

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


@total_ordering
@dataclass(frozen=True)
class VersionNumber:
    """Comparable ``major.minor.patch`` triple."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, raw: str) -> "VersionNumber":
        match = _VERSION_RE.match(raw.strip())
        if not match:
            raise ValueError(f"Invalid version number: {raw!r}")
        return cls(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __lt__(self, other: "VersionNumber") -> bool:  # type: ignore[override]
        if not isinstance(other, VersionNumber):
            return NotImplemented
        return self.as_tuple() < other.as_tuple()

    def is_newer_than(self, other: "VersionNumber") -> bool:
        return self.as_tuple() > other.as_tuple()

    def is_equal_to(self, other: "VersionNumber") -> bool:
        return self.as_tuple() == other.as_tuple()

    def __str__(self) -> str:  # type: ignore[override]
        return f"{self.major}.{self.minor}.{self.patch}"
