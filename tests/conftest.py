"""Pytest configuration for owl-resolver tests."""

import sys
from pathlib import Path

import pytest

# Allow running the suite from a checkout without installing the package
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

from owl_resolver.config import ResolverConfig  # noqa: E402

from tests.helpers import NOW  # noqa: E402
from tests.helpers import FakeEnumerator  # noqa: E402
from tests.helpers import set_mtime  # noqa: E402


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Host project with Gemfile older than Gemfile.lock, both in the past."""
    root = tmp_path / "app"
    (root / "src").mkdir(parents=True)
    gemfile = root / "Gemfile"
    lock = root / "Gemfile.lock"
    gemfile.write_text("source 'https://rubygems.org'\ngem 'opal'\n")
    lock.write_text("GEM\n  specs:\n    opal (1.8.2)\n")
    set_mtime(gemfile, NOW - 2000)
    set_mtime(lock, NOW - 1000)
    return root


@pytest.fixture
def gems(tmp_path: Path) -> Path:
    """External dependency root outside the project, with one gem lib dir."""
    lib = tmp_path / "gems" / "lib"
    (lib / "opal" / "core").mkdir(parents=True)
    (lib / "foo.rb").write_text("puts 'foo'\n")
    (lib / "opal" / "core" / "kernel.rb").write_text("module Kernel; end\n")
    (lib / "opal" / "core" / "kernel.js").write_text("// compiled\n")
    (lib / "opal" / "README.md").write_text("not indexed\n")
    return lib


@pytest.fixture
def config(project: Path) -> ResolverConfig:
    return ResolverConfig(project_root=project)


@pytest.fixture
def fake_enumerator():
    return FakeEnumerator


@pytest.fixture(autouse=True)
def clean_owl_env(monkeypatch):
    """Keep OWL_* variables from the developer's shell out of the tests."""
    for key in ("OWL_CACHE_DIR", "OWL_ON_CORRUPT_CACHE", "OWL_LOG_LEVEL", "OWL_LOG_PATH"):
        monkeypatch.delenv(key, raising=False)
