from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from .types_dependencies import LicenseInfo


@dataclass(frozen=True)
class Violation:
    """A policy violation or warning for a single gem.

    Warnings and violations share this shape; the bucket they are stored in
    on :class:`CheckResult` is what tells them apart.
    """

    info: LicenseInfo
    reason: str

    def as_dict(self) -> dict:
        payload = self.info.as_dict()
        payload["reason"] = self.reason
        return payload


@dataclass
class CheckResult:
    passed: List[LicenseInfo] = field(default_factory=list)
    violations: List[Violation] = field(default_factory=list)
    warnings: List[Violation] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.passed) + len(self.violations) + len(self.warnings)

    @property
    def ok(self) -> bool:
        return not self.violations

    def summary(self) -> dict[str, int]:
        return {
            "total": self.total,
            "passed": len(self.passed),
            "violations": len(self.violations),
            "warnings": len(self.warnings),
        }
