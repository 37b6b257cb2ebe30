from __future__ import annotations

"""Shared data structures for license resolution and policy checks.

The dataclasses live in domain-focused modules; this module keeps a single
stable import path for callers.
"""

from .types_check import CheckResult, Violation
from .types_dependencies import Dependency, LicenseInfo, LicenseSource

__all__ = [
    "CheckResult",
    "Dependency",
    "LicenseInfo",
    "LicenseSource",
    "Violation",
]
