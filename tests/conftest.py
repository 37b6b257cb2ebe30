import sys
from pathlib import Path

import pytest

# Ensure src package is importable without installation
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.exists():
    sys.path.insert(0, str(SRC))

from license_inspector.log import configure_logging  # noqa: E402

FIXTURES = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture(autouse=True)
def _quiet_logging():
    configure_logging(quiet=True)


@pytest.fixture
def sample_lockfile() -> Path:
    return FIXTURES / "Gemfile.lock.sample"


class DummyResponse:
    def __init__(self, status_code=200, payload=None, body_error=None):
        self.status_code = status_code
        self._payload = payload
        self._body_error = body_error

    def json(self):
        if self._body_error:
            raise self._body_error
        return self._payload


class DummyHttp:
    """Stands in for ``requests``: maps URLs to responses or exceptions and records calls."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers or {}, "timeout": timeout})
        outcome = self.routes.get(url, DummyResponse(status_code=404))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def called(self, url):
        return [call for call in self.calls if call["url"] == url]


@pytest.fixture
def dummy_http():
    return DummyHttp()


@pytest.fixture
def make_response():
    return DummyResponse
