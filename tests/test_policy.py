from pathlib import Path

import pytest

from license_inspector import policy as policy_module
from license_inspector.errors import ConfigurationError
from license_inspector.policy import SAMPLE_POLICY, Policy, load_policy, write_sample_policy


class RecordingLogger:
    def __init__(self):
        self.events = []

    def warning(self, event, **fields):
        self.events.append((event, fields))


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / ".license-inspector.yml"
    path.write_text(content)
    return path


def test_loads_a_valid_policy(tmp_path: Path):
    path = _write(
        tmp_path,
        """
allowed_licenses:
  - MIT
ignored_gems:
  - bundler
deny_unknown: false
""",
    )

    policy = load_policy(path)

    assert policy.allowed_licenses == ("MIT",)
    assert policy.ignored_gems == ("bundler",)
    assert policy.deny_unknown is False
    assert policy.license_match == "any"


def test_missing_file_raises():
    with pytest.raises(ConfigurationError, match="Configuration file not found"):
        load_policy("missing.yml")


def test_unknown_keys_are_reported(tmp_path: Path, monkeypatch):
    recorder = RecordingLogger()
    monkeypatch.setattr(policy_module, "log", recorder)
    path = _write(tmp_path, "allowed_licenses: []\nignored_gems: []\ndeny_unknown: true\nextra_key: value\n")

    load_policy(path)

    assert recorder.events[0][1]["message"] == "Unknown configuration key 'extra_key'"


@pytest.mark.parametrize(
    "content, message",
    [
        ("allowed_licenses: MIT\n", "allowed_licenses must be an array"),
        ("ignored_gems: bundler\n", "ignored_gems must be an array"),
        ("deny_unknown: sometimes\n", "deny_unknown must be a boolean"),
        ("license_match: most\n", "license_match must be one of"),
        ("- MIT\n- ISC\n", "Configuration must be a mapping"),
        ("allowed_licenses: [MIT\n", "Failed to parse configuration"),
    ],
)
def test_invalid_policies_raise(tmp_path: Path, content: str, message: str):
    with pytest.raises(ConfigurationError, match=message):
        load_policy(_write(tmp_path, content))


def test_empty_file_yields_defaults(tmp_path: Path):
    assert load_policy(_write(tmp_path, "")) == Policy.default()


def test_defaults():
    policy = Policy.default()

    assert policy.allowed_licenses == ()
    assert policy.ignored_gems == ()
    assert policy.deny_unknown is True


def test_sample_policy_round_trips(tmp_path: Path):
    path = write_sample_policy(tmp_path / "nested" / ".license-inspector.yml")

    assert path.read_text() == SAMPLE_POLICY
    policy = load_policy(path)
    assert "Apache-2.0" in policy.allowed_licenses
    assert policy.deny_unknown is True
