from __future__ import annotations

import os
import re
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from packaging.version import InvalidVersion, Version

from .errors import GemNotInstalledError
from .log import get_logger

log = get_logger(__name__)

GEM_ENV_TIMEOUT = 10

_STRING = r"[\"']((?:[^\"'\\]|\\.)*)[\"']"
_STRING_RE = re.compile(_STRING)
_LICENSES_RE = re.compile(r"^\s*\w+\.licenses\s*=\s*\[(.*?)\]", re.MULTILINE | re.DOTALL)
_LICENSE_RE = re.compile(r"^\s*\w+\.license\s*=\s*" + _STRING, re.MULTILINE)
_HOMEPAGE_RE = re.compile(r"^\s*\w+\.homepage\s*=\s*" + _STRING, re.MULTILINE)
_METADATA_RE = re.compile(r"^\s*\w+\.metadata\s*=\s*\{(.*?)\}", re.MULTILINE | re.DOTALL)
_SOURCE_CODE_URI_RE = re.compile(r"[\"']source_code_uri[\"']\s*=>\s*" + _STRING)


@dataclass(frozen=True)
class GemMetadata:
    name: str
    version: str
    licenses: List[str] = field(default_factory=list)
    license: Optional[str] = None
    homepage: Optional[str] = None
    source_code_uri: Optional[str] = None


def discover_gem_paths() -> List[Path]:
    """Return gem installation roots, most specific first.

    ``GEM_HOME`` and ``GEM_PATH`` win; without either we ask the ``gem``
    executable, if one is installed.
    """

    raw: list[str] = []
    if os.environ.get("GEM_HOME"):
        raw.append(os.environ["GEM_HOME"])
    if os.environ.get("GEM_PATH"):
        raw.extend(os.environ["GEM_PATH"].split(os.pathsep))
    if not raw:
        raw.extend(_gem_env_paths())

    paths: list[Path] = []
    for entry in raw:
        entry = entry.strip()
        if entry and Path(entry) not in paths:
            paths.append(Path(entry))
    return paths


def _gem_env_paths() -> list[str]:
    executable = shutil.which("gem")
    if not executable:
        return []
    try:
        result = subprocess.run(
            [executable, "env", "gempath"],
            check=True,
            capture_output=True,
            text=True,
            timeout=GEM_ENV_TIMEOUT,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        log.debug("gem_env_failed", error=str(exc))
        return []
    return result.stdout.strip().split(os.pathsep)


def _parse_version(version: str) -> Optional[Version]:
    try:
        return Version(version)
    except InvalidVersion:
        return None


def _unquote(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


def parse_gemspec(content: str, name: str, version: str) -> GemMetadata:
    """Read license and URL fields out of an installed (generated) gemspec."""

    licenses: list[str] = []
    licenses_match = _LICENSES_RE.search(content)
    if licenses_match:
        licenses = [_unquote(value) for value in _STRING_RE.findall(licenses_match.group(1))]

    license_match = _LICENSE_RE.search(content)
    homepage_match = _HOMEPAGE_RE.search(content)

    source_code_uri = None
    metadata_match = _METADATA_RE.search(content)
    if metadata_match:
        uri_match = _SOURCE_CODE_URI_RE.search(metadata_match.group(1))
        if uri_match:
            source_code_uri = _unquote(uri_match.group(1))

    return GemMetadata(
        name=name,
        version=version,
        licenses=licenses,
        license=_unquote(license_match.group(1)) if license_match else None,
        homepage=_unquote(homepage_match.group(1)) if homepage_match else None,
        source_code_uri=source_code_uri,
    )


class GemspecReader:
    """Looks up installed gem specifications under a set of gem roots."""

    def __init__(self, gem_paths: Sequence[Path | str] = ()) -> None:
        self.gem_paths = [Path(path) for path in gem_paths]

    def _candidates(self, name: str) -> Iterable[tuple[str, Path]]:
        # A dotted version, then at most a platform such as "x86_64-linux".
        # "rack" must not pick up "rack-2fa-1.0.0" or "rack-test-2.1.0".
        pattern = re.compile(
            rf"^{re.escape(name)}-(\d+(?:\.[0-9A-Za-z]+)*)(?:-[a-z][a-z0-9_]*(?:-[a-z0-9_]+)*)?\.gemspec$"
        )
        for root in self.gem_paths:
            spec_dir = root / "specifications"
            try:
                entries = sorted(spec_dir.iterdir())
            except OSError:
                continue
            for entry in entries:
                match = pattern.match(entry.name)
                if match:
                    yield match.group(1), entry

    def find(self, name: str, version: str | None = None) -> GemMetadata:
        candidates = list(self._candidates(name))
        exact = [item for item in candidates if item[0] == version]
        if exact:
            found_version, path = exact[0]
        else:
            ranked = [(parsed, item) for item in candidates if (parsed := _parse_version(item[0])) is not None]
            if not ranked:
                raise GemNotInstalledError(name)
            found_version, path = max(ranked, key=lambda pair: pair[0])[1]

        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise GemNotInstalledError(f"{name}: unreadable gemspec {path}: {exc}") from exc

        return parse_gemspec(content, name=name, version=found_version)
