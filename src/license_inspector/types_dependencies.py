from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class LicenseSource(str, Enum):
    LOCAL = "gemspec"
    REMOTE_API = "api"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Dependency:
    name: str
    version: str


@dataclass(frozen=True)
class LicenseInfo:
    name: str
    version: str
    licenses: Tuple[str, ...] = field(default_factory=tuple)
    source: LicenseSource = LicenseSource.UNKNOWN
    homepage: Optional[str] = None

    def __post_init__(self) -> None:
        # Accept any iterable of labels but always store an immutable tuple.
        if not isinstance(self.licenses, tuple):
            object.__setattr__(self, "licenses", tuple(self.licenses))

    @property
    def license_label(self) -> str:
        return " | ".join(self.licenses)

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "licenses": list(self.licenses),
            "source": self.source.value,
            "homepage": self.homepage,
        }
