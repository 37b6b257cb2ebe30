from __future__ import annotations

from typing import Iterable, List, Sequence

from .license_matcher import matches
from .policy import Policy
from .types import CheckResult, LicenseInfo, Violation

UNKNOWN_LICENSE_REASON = "License not specified"


def _is_allowed(license_label: str, allowed: Sequence[str]) -> bool:
    return any(matches(license_label, candidate) for candidate in allowed)


def _violation_reason(info: LicenseInfo, policy: Policy) -> str | None:
    allowed = policy.allowed_licenses
    if policy.license_match == "all":
        disallowed = [label for label in info.licenses if not _is_allowed(label, allowed)]
        if not disallowed:
            return None
        return f"Licenses '{', '.join(disallowed)}' are not in the allowed list"

    # Dual-licensed gems pass when any one of their licenses is allowed.
    if any(_is_allowed(label, allowed) for label in info.licenses):
        return None
    return f"License '{', '.join(info.licenses)}' is not in the allowed list"


def check_licenses(policy: Policy, infos: Iterable[LicenseInfo]) -> CheckResult:
    """Sort each gem into passed, violations or warnings.

    Ignored gems are dropped entirely. Labels are compared with
    :func:`license_matcher.matches`, so ``"Apache License, Version 2.0"``
    satisfies an allow-list entry of ``"Apache-2.0"``.
    """

    result = CheckResult()
    ignored = set(policy.ignored_gems)

    for info in infos:
        if info.name in ignored:
            continue

        if not info.licenses:
            if policy.deny_unknown:
                result.warnings.append(Violation(info=info, reason=UNKNOWN_LICENSE_REASON))
            else:
                result.passed.append(info)
            continue

        if not policy.allowed_licenses:
            result.passed.append(info)
            continue

        reason = _violation_reason(info, policy)
        if reason is None:
            result.passed.append(info)
        else:
            result.violations.append(Violation(info=info, reason=reason))

    return result


class LicenseChecker:
    def __init__(self, policy: Policy) -> None:
        self.policy = policy

    def check(self, infos: Iterable[LicenseInfo]) -> CheckResult:
        return check_licenses(self.policy, infos)


__all__: List[str] = ["LicenseChecker", "UNKNOWN_LICENSE_REASON", "check_licenses"]
