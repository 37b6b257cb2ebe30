from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Tuple

import yaml

from .errors import ConfigurationError
from .log import get_logger

log = get_logger(__name__)

DEFAULT_POLICY_PATH = ".license-inspector.yml"
VALID_KEYS = ("allowed_licenses", "ignored_gems", "deny_unknown", "license_match")
MATCH_MODES = ("any", "all")

SAMPLE_POLICY = """\
# .license-inspector.yml
allowed_licenses:
  - MIT
  - Apache-2.0
  - BSD-2-Clause
  - BSD-3-Clause
  - ISC
  - Ruby

ignored_gems:
  - bundler
  - rake

# Treat gems with unspecified licenses as warnings
deny_unknown: true

# "any": one allowed license is enough for dual-licensed gems.
# "all": every declared license must be allowed.
license_match: any
"""


@dataclass(frozen=True)
class Policy:
    allowed_licenses: Tuple[str, ...] = field(default_factory=tuple)
    ignored_gems: Tuple[str, ...] = field(default_factory=tuple)
    deny_unknown: bool = True
    license_match: str = "any"

    @classmethod
    def default(cls) -> "Policy":
        return cls()

    @classmethod
    def from_dict(cls, raw: dict) -> "Policy":
        for key in raw:
            if key not in VALID_KEYS:
                log.warning("unknown_configuration_key", key=key, message=f"Unknown configuration key '{key}'")

        license_match = raw.get("license_match", "any")
        if license_match not in MATCH_MODES:
            raise ConfigurationError(f"license_match must be one of: {', '.join(MATCH_MODES)}")

        return cls(
            allowed_licenses=_string_list(raw.get("allowed_licenses", []), "allowed_licenses"),
            ignored_gems=_string_list(raw.get("ignored_gems", []), "ignored_gems"),
            deny_unknown=_boolean(raw.get("deny_unknown", True), "deny_unknown"),
            license_match=license_match,
        )


def _string_list(value: Any, key: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigurationError(f"{key} must be an array")
    return tuple(str(item) for item in value)


def _boolean(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{key} must be a boolean")
    return value


def load_policy(path: str | Path = DEFAULT_POLICY_PATH) -> Policy:
    policy_path = Path(path)
    if not policy_path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        content = policy_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Unable to read configuration {path}: {exc}") from exc

    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse configuration: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration must be a mapping")

    return Policy.from_dict({str(key): value for key, value in raw.items()})


def write_sample_policy(path: str | Path = DEFAULT_POLICY_PATH) -> Path:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(SAMPLE_POLICY)
    return destination
