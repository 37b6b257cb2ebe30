"""Resolve the license(s) of a gem from local gemspecs, RubyGems and GitHub.

Sources are tried in order and the first one that reports at least one
license wins:

1. the installed gemspec (``LocalGemspecSource``),
2. the RubyGems API (``RubyGemsSource``).

When the winning labels look like free text ("Apache License, Version
2.0"), ``GitHubLicenseCanonicalizer`` asks GitHub's license detection for
the repository and rewrites matching labels to the SPDX id it reports.

Nothing in here raises for remote trouble: timeouts, HTTP errors and bad
JSON all degrade to "no data from this source".
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import requests  # type: ignore[import-untyped]

from .errors import GemNotInstalledError
from .gemspec import GemspecReader, discover_gem_paths
from .license_matcher import fingerprint, needs_canonicalization
from .log import get_logger
from .types import Dependency, LicenseInfo, LicenseSource
from .version import __version__

log = get_logger(__name__)

RUBYGEMS_ENDPOINT = "https://rubygems.org/api/v1/gems"
GITHUB_API_ENDPOINT = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_HOSTS = {"github.com", "www.github.com"}
REQUEST_TIMEOUT = 5.0
DEFAULT_USER_AGENT = f"license-inspector/{__version__}"


@dataclass(frozen=True)
class FetcherConfig:
    user_agent: str = DEFAULT_USER_AGENT
    github_token: Optional[str] = None
    connect_timeout: float = REQUEST_TIMEOUT
    read_timeout: float = REQUEST_TIMEOUT
    rubygems_url: str = RUBYGEMS_ENDPOINT
    github_api_url: str = GITHUB_API_ENDPOINT
    gem_paths: Tuple[Path, ...] = field(default_factory=tuple)

    @property
    def timeout(self) -> Tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)

    @classmethod
    def from_env(cls) -> "FetcherConfig":
        env_timeout = os.environ.get("LICENSE_INSPECTOR_TIMEOUT")
        try:
            timeout = float(env_timeout) if env_timeout is not None else REQUEST_TIMEOUT
        except ValueError:
            timeout = REQUEST_TIMEOUT

        return cls(
            github_token=os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN") or None,
            connect_timeout=timeout,
            read_timeout=timeout,
            rubygems_url=os.environ.get("LICENSE_INSPECTOR_RUBYGEMS_URL") or RUBYGEMS_ENDPOINT,
            github_api_url=os.environ.get("LICENSE_INSPECTOR_GITHUB_API_URL") or GITHUB_API_ENDPOINT,
            gem_paths=tuple(discover_gem_paths()),
        )


@dataclass(frozen=True)
class LicensePayload:
    licenses: Tuple[str, ...]
    homepage: Optional[str] = None
    source_code_uri: Optional[str] = None


def normalize_licenses(licenses: Any, license: Any = None) -> List[str]:
    """Merge a list field and a singular field into trimmed, unique labels.

    Entries that are not strings (numbers, nested objects) are dropped.
    """

    items: list[Any] = []
    if isinstance(licenses, (list, tuple)):
        items.extend(licenses)
    elif licenses is not None:
        items.append(licenses)
    if license is not None:
        items.append(license)

    normalized: list[str] = []
    for item in items:
        if not isinstance(item, str):
            continue
        value = item.strip()
        if value and value not in normalized:
            normalized.append(value)
    return normalized


def _get_json(http: Any, url: str, headers: dict, timeout: Tuple[float, float], context: dict) -> dict | None:
    try:
        response = http.get(url, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        log.debug("http_request_failed", url=url, error=str(exc), **context)
        return None

    if not 200 <= response.status_code < 300:
        log.debug("http_status_unusable", url=url, status=response.status_code, **context)
        return None

    try:
        payload = response.json()
    except ValueError as exc:
        log.debug("http_payload_malformed", url=url, error=str(exc), **context)
        return None

    if not isinstance(payload, dict):
        log.debug("http_payload_unexpected", url=url, payload_type=type(payload).__name__, **context)
        return None
    return payload


class LocalGemspecSource:
    source = LicenseSource.LOCAL

    def __init__(self, reader: GemspecReader) -> None:
        self.reader = reader

    def lookup(self, name: str, version: str) -> LicensePayload | None:
        try:
            spec = self.reader.find(name, version)
        except GemNotInstalledError:
            log.debug("gemspec_not_installed", gem=name, version=version)
            return None

        licenses = normalize_licenses(spec.licenses, spec.license)
        if not licenses:
            return None
        return LicensePayload(
            licenses=tuple(licenses),
            homepage=spec.homepage or None,
            source_code_uri=spec.source_code_uri or None,
        )


class RubyGemsSource:
    source = LicenseSource.REMOTE_API

    def __init__(self, config: FetcherConfig, http: Any = None) -> None:
        self.config = config
        self.http = http or requests

    def lookup(self, name: str, version: str) -> LicensePayload | None:
        url = f"{self.config.rubygems_url.rstrip('/')}/{name}.json"
        payload = _get_json(
            self.http,
            url,
            headers={"User-Agent": self.config.user_agent},
            timeout=self.config.timeout,
            context={"gem": name},
        )
        if payload is None:
            return None

        licenses = normalize_licenses(payload.get("licenses"), payload.get("license"))
        if not licenses:
            return None

        homepage = payload.get("homepage_uri") or payload.get("homepage")
        source_code_uri = payload.get("source_code_uri")
        return LicensePayload(
            licenses=tuple(licenses),
            homepage=str(homepage) if homepage else None,
            source_code_uri=str(source_code_uri) if source_code_uri else None,
        )


def github_repository(url: str | None) -> tuple[str, str] | None:
    """Extract ``(owner, repo)`` from a github.com URL, or ``None``."""

    if not url or not str(url).strip():
        return None
    try:
        parts = urlsplit(str(url).strip())
    except ValueError:
        return None
    if (parts.hostname or "").lower() not in GITHUB_HOSTS:
        return None

    segments = [segment for segment in parts.path.split("/") if segment]
    if len(segments) < 2:
        return None

    owner = segments[0]
    repo = segments[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        return None
    return owner, repo


def canonicalize_labels(
    licenses: Sequence[str], spdx_id: str, name: str | None = None, key: str | None = None
) -> List[str]:
    """Rewrite labels that fingerprint like GitHub's detected license to its SPDX id."""

    fingerprints = {value for value in (fingerprint(spdx_id), fingerprint(name), fingerprint(key)) if value}
    if not fingerprints:
        return list(licenses)

    canonical: list[str] = []
    for label in licenses:
        value = spdx_id if fingerprint(label) in fingerprints else label
        if value not in canonical:
            canonical.append(value)
    return canonical


class GitHubLicenseCanonicalizer:
    def __init__(self, config: FetcherConfig, http: Any = None) -> None:
        self.config = config
        self.http = http or requests

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": self.config.user_agent,
        }
        if self.config.github_token:
            headers["Authorization"] = f"Bearer {self.config.github_token}"
        return headers

    def detected_license(self, owner: str, repo: str) -> dict | None:
        url = f"{self.config.github_api_url.rstrip('/')}/repos/{owner}/{repo}/license"
        payload = _get_json(
            self.http,
            url,
            headers=self._headers(),
            timeout=self.config.timeout,
            context={"repository": f"{owner}/{repo}"},
        )
        if payload is None:
            return None

        license_data = payload.get("license")
        if not isinstance(license_data, dict):
            return None
        spdx_id = license_data.get("spdx_id")
        spdx_id = spdx_id.strip() if isinstance(spdx_id, str) else ""
        if not spdx_id or spdx_id == "NOASSERTION":
            log.debug("github_license_unasserted", repository=f"{owner}/{repo}")
            return None

        detected: dict[str, str | None] = {"spdx_id": spdx_id}
        for field_name in ("name", "key"):
            value = license_data.get(field_name)
            detected[field_name] = value if isinstance(value, str) else None
        return detected

    def canonicalize(
        self, licenses: Sequence[str], source_code_uri: str | None = None, homepage: str | None = None
    ) -> List[str]:
        if not licenses or not needs_canonicalization(licenses):
            return list(licenses)

        repository = github_repository(source_code_uri) or github_repository(homepage)
        if repository is None:
            return list(licenses)

        detected = self.detected_license(*repository)
        if detected is None:
            return list(licenses)

        canonical = canonicalize_labels(licenses, detected["spdx_id"], detected["name"], detected["key"])
        if canonical != list(licenses):
            log.debug("licenses_canonicalized", repository="/".join(repository), before=list(licenses), after=canonical)
        return canonical


class LicenseFetcher:
    """Resolves a :class:`LicenseInfo` for each gem through the source chain."""

    def __init__(
        self,
        config: FetcherConfig | None = None,
        sources: Sequence[Any] | None = None,
        canonicalizer: GitHubLicenseCanonicalizer | None = None,
        http: Any = None,
    ) -> None:
        self.config = config or FetcherConfig()
        self.sources = list(sources) if sources is not None else [
            LocalGemspecSource(GemspecReader(self.config.gem_paths)),
            RubyGemsSource(self.config, http=http),
        ]
        self.canonicalizer = canonicalizer or GitHubLicenseCanonicalizer(self.config, http=http)

    def fetch(self, name: str, version: str) -> LicenseInfo:
        for source in self.sources:
            payload = source.lookup(name, version)
            if payload is None or not payload.licenses:
                continue

            licenses = self.canonicalizer.canonicalize(payload.licenses, payload.source_code_uri, payload.homepage)
            return LicenseInfo(
                name=name,
                version=version,
                licenses=tuple(licenses),
                source=source.source,
                homepage=payload.homepage or payload.source_code_uri,
            )

        log.debug("license_unknown", gem=name, version=version)
        return LicenseInfo(name=name, version=version, licenses=(), source=LicenseSource.UNKNOWN, homepage=None)

    def fetch_all(self, dependencies: Iterable[Dependency], workers: int = 1) -> List[LicenseInfo]:
        items = list(dependencies)
        if workers <= 1 or len(items) <= 1:
            return [self.fetch(dep.name, dep.version) for dep in items]

        # Executor.map yields in submission order, so results line up with the input.
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda dep: self.fetch(dep.name, dep.version), items))
