import os
from pathlib import Path

import pytest

from license_inspector import gemspec
from license_inspector.errors import GemNotInstalledError
from license_inspector.gemspec import GemspecReader, discover_gem_paths, parse_gemspec

RAKE_GEMSPEC = '''\
# -*- encoding: utf-8 -*-
# stub: rake 13.2.1 ruby lib

Gem::Specification.new do |s|
  s.name = "rake".freeze
  s.version = "13.2.1".freeze

  s.required_rubygems_version = Gem::Requirement.new(">= 1.3.2".freeze) if s.respond_to? :required_rubygems_version=
  s.metadata = { "bug_tracker_uri" => "https://github.com/ruby/rake/issues", "source_code_uri" => "https://github.com/ruby/rake/tree/v13.2.1" } if s.respond_to? :metadata=
  s.authors = ["Hiroshi SHIBATA".freeze, "Eric Hodel".freeze]
  s.homepage = "https://github.com/ruby/rake".freeze
  s.licenses = ["MIT".freeze]
  s.summary = "Rake is a Make-like program implemented in Ruby".freeze
end
'''


def _install(root: Path, filename: str, content: str) -> Path:
    spec_dir = root / "specifications"
    spec_dir.mkdir(parents=True, exist_ok=True)
    path = spec_dir / filename
    path.write_text(content)
    return path


def test_parse_gemspec_reads_licenses_homepage_and_source_uri():
    spec = parse_gemspec(RAKE_GEMSPEC, name="rake", version="13.2.1")

    assert spec.licenses == ["MIT"]
    assert spec.license is None
    assert spec.homepage == "https://github.com/ruby/rake"
    assert spec.source_code_uri == "https://github.com/ruby/rake/tree/v13.2.1"


def test_parse_gemspec_reads_singular_license_field():
    spec = parse_gemspec('s.license = "Ruby".freeze\n', name="legacy", version="0.1")

    assert spec.licenses == []
    assert spec.license == "Ruby"
    assert spec.homepage is None


def test_reader_prefers_exact_version(tmp_path: Path):
    _install(tmp_path, "rake-13.2.1.gemspec", RAKE_GEMSPEC)
    _install(tmp_path, "rake-13.0.0.gemspec", RAKE_GEMSPEC.replace('"MIT"', '"Old"'))

    spec = GemspecReader([tmp_path]).find("rake", "13.0.0")

    assert spec.version == "13.0.0"
    assert spec.licenses == ["Old"]


def test_reader_falls_back_to_highest_installed_version(tmp_path: Path):
    _install(tmp_path, "rake-9.0.0.gemspec", RAKE_GEMSPEC)
    _install(tmp_path, "rake-13.2.1.gemspec", RAKE_GEMSPEC)

    spec = GemspecReader([tmp_path]).find("rake", "14.0.0")

    assert spec.version == "13.2.1"


def test_reader_matches_platform_specific_gemspecs(tmp_path: Path):
    _install(tmp_path, "nokogiri-1.16.2-x86_64-linux.gemspec", 's.licenses = ["MIT".freeze]\n')

    assert GemspecReader([tmp_path]).find("nokogiri", "1.16.2").licenses == ["MIT"]


def test_reader_does_not_confuse_prefixed_gem_names(tmp_path: Path):
    _install(tmp_path, "rspec-core-3.13.0.gemspec", RAKE_GEMSPEC)

    with pytest.raises(GemNotInstalledError):
        GemspecReader([tmp_path]).find("rspec", "3.13.0")


def test_reader_ignores_gems_whose_name_extends_the_requested_one(tmp_path: Path):
    _install(tmp_path, "rack-2fa-1.0.0.gemspec", 's.licenses = ["GPL-3.0".freeze]\n')

    with pytest.raises(GemNotInstalledError):
        GemspecReader([tmp_path]).find("rack", "3.0.0")

    _install(tmp_path, "rack-2.2.8.gemspec", 's.licenses = ["MIT".freeze]\n')

    spec = GemspecReader([tmp_path]).find("rack", "3.0.0")

    assert spec.version == "2.2.8"
    assert spec.licenses == ["MIT"]
    assert GemspecReader([tmp_path]).find("rack-2fa", "1.0.0").licenses == ["GPL-3.0"]


def test_reader_skips_unparseable_versions_when_falling_back(tmp_path: Path):
    _install(tmp_path, "http-2.not.a.version.gemspec", RAKE_GEMSPEC)

    with pytest.raises(GemNotInstalledError):
        GemspecReader([tmp_path]).find("http", "5.1.1")


def test_reader_raises_when_not_installed(tmp_path: Path):
    with pytest.raises(GemNotInstalledError):
        GemspecReader([tmp_path, tmp_path / "missing"]).find("rake", "13.2.1")


def test_discover_gem_paths_from_environment(monkeypatch, tmp_path: Path):
    home = tmp_path / "home"
    extra = tmp_path / "extra"
    monkeypatch.setenv("GEM_HOME", str(home))
    monkeypatch.setenv("GEM_PATH", os.pathsep.join([str(extra), str(home)]))

    assert discover_gem_paths() == [home, extra]


def test_discover_gem_paths_without_gem_executable(monkeypatch):
    monkeypatch.delenv("GEM_HOME", raising=False)
    monkeypatch.delenv("GEM_PATH", raising=False)
    monkeypatch.setattr(gemspec.shutil, "which", lambda name: None)

    assert discover_gem_paths() == []
