from __future__ import annotations


class LicenseInspectorError(Exception):
    """Base class for errors caused by user input (lockfiles, policy files)."""


class ConfigurationError(LicenseInspectorError):
    pass


class DependencyResolutionError(LicenseInspectorError):
    pass


class LockfileNotFoundError(DependencyResolutionError):
    pass


class LockfileParseError(DependencyResolutionError):
    pass


class GemNotInstalledError(LookupError):
    """Raised by the gemspec reader; the fetcher treats it as "try the next source"."""
