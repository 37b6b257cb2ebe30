from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from .errors import LockfileNotFoundError, LockfileParseError
from .log import get_logger
from .types import Dependency

log = get_logger(__name__)

# Bundler always locks itself; it is never a project dependency worth checking.
META_PACKAGE = "bundler"

SOURCE_SECTIONS = {"GEM", "GIT", "PATH", "PLUGIN SOURCE"}
DEPENDENCIES_SECTION = "DEPENDENCIES"

_SPEC_LINE = re.compile(r"^ {4}(?P<name>[^\s(]+) \((?P<version>[^)]+)\)$")
_SPEC_DEPENDENCY_LINE = re.compile(r"^ {6}\S")
_DEPENDENCY_LINE = re.compile(r"^ {2}(?P<name>[^\s(!]+)!?(?: \([^)]*\))?!?$")
_CONFLICT_MARKER = re.compile(r"^(<{7}|={7}|>{7})(\s|$)")


@dataclass
class ParsedLockfile:
    specs: Dict[str, str] = field(default_factory=dict)
    dependencies: List[str] = field(default_factory=list)


def _strip_platform(version: str) -> str:
    # "1.15.4-x86_64-linux" locks the same gem version for one platform.
    return version.split("-", 1)[0]


def parse_lockfile(content: str, source: str = "Gemfile.lock") -> ParsedLockfile:
    parsed = ParsedLockfile()
    section: str | None = None
    in_specs = False

    for number, line in enumerate(content.splitlines(), start=1):
        if _CONFLICT_MARKER.match(line):
            raise LockfileParseError(
                f"Failed to parse {source}: unresolved merge conflict at line {number}"
            )
        if not line.strip():
            continue

        if not line.startswith(" "):
            section = line.strip()
            in_specs = False
            continue

        if section in SOURCE_SECTIONS:
            if line.strip() == "specs:":
                in_specs = True
                continue
            if not in_specs or _SPEC_DEPENDENCY_LINE.match(line):
                continue
            if line.startswith("  ") and not line.startswith("    "):
                # remote:, revision:, branch: and similar source attributes
                in_specs = False
                continue
            match = _SPEC_LINE.match(line)
            if not match:
                raise LockfileParseError(
                    f"Failed to parse {source}: malformed spec entry at line {number}: {line.strip()!r}"
                )
            parsed.specs.setdefault(match.group("name"), _strip_platform(match.group("version")))
        elif section == DEPENDENCIES_SECTION:
            match = _DEPENDENCY_LINE.match(line)
            if not match:
                raise LockfileParseError(
                    f"Failed to parse {source}: malformed dependency at line {number}: {line.strip()!r}"
                )
            parsed.dependencies.append(match.group("name"))

    return parsed


def resolve_dependencies(lockfile_path: str | Path = "Gemfile.lock", recursive: bool = False) -> List[Dependency]:
    """Return the locked dependencies of a Bundler project, sorted by name.

    Only the gems listed under ``DEPENDENCIES`` are returned unless
    ``recursive`` is set, in which case every locked spec is included.
    """

    path = Path(lockfile_path)
    if not path.exists():
        raise LockfileNotFoundError(f"Gemfile.lock not found: {lockfile_path}")

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise LockfileParseError(f"Failed to parse {lockfile_path}: {exc}") from exc

    parsed = parse_lockfile(content, source=str(lockfile_path))
    names = list(parsed.specs) if recursive else parsed.dependencies

    resolved: Dict[str, Dependency] = {}
    for name in names:
        if name == META_PACKAGE or name in resolved:
            continue
        version = parsed.specs.get(name)
        if version is None:
            continue
        resolved[name] = Dependency(name=name, version=version)

    dependencies = sorted(resolved.values(), key=lambda dep: dep.name)
    log.debug("dependencies_resolved", lockfile=str(lockfile_path), recursive=recursive, count=len(dependencies))
    return dependencies


class DependencyResolver:
    def __init__(self, lockfile_path: str | Path = "Gemfile.lock", recursive: bool = False) -> None:
        self.lockfile_path = lockfile_path
        self.recursive = recursive

    def resolve(self) -> List[Dependency]:
        return resolve_dependencies(self.lockfile_path, recursive=self.recursive)
