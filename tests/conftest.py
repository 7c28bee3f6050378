"""
Pytest configuration and shared fixtures for skillwarden tests.
"""

from pathlib import Path
from typing import Callable, Optional

import pytest

from skillwarden.advisories import AdvisoryRepository
from skillwarden.database import open_database
from skillwarden.ledger import SkillVersionRepository
from skillwarden.lock import ManifestLock
from skillwarden.manifest import ManifestStore
from skillwarden.settings import reset_settings

SKILL_TEMPLATE = """---
name: {name}
version: {version}
description: Test skill
---

# {name}

## Usage

Run it.

## Configuration

Set things up.
"""


def skill_document(name: str = "demo", version: str = "1.0.0", body: str = "") -> str:
    return SKILL_TEMPLATE.format(name=name, version=version) + body


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep the developer's config and env out of every test."""
    for var in (
        "SKILLWARDEN_HOME",
        "SKILLWARDEN_MANIFEST",
        "SKILLWARDEN_DB",
        "SKILLWARDEN_SKILLS_DIR",
        "SKILLWARDEN_NAMESPACE",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def manifest_path(tmp_path) -> Path:
    return tmp_path / "home" / "manifest.json"


@pytest.fixture
def store(manifest_path) -> ManifestStore:
    """Manifest store whose lock never really sleeps."""
    lock = ManifestLock(
        ManifestStore.lock_path_for(manifest_path),
        max_attempts=5,
        sleep=lambda _s: None,
    )
    return ManifestStore(manifest_path, lock=lock)


@pytest.fixture
def skills_dir(tmp_path) -> Path:
    path = tmp_path / "skills"
    path.mkdir()
    return path


@pytest.fixture
def install_skill(store, skills_dir) -> Callable:
    """Write a SKILL.md under *skills_dir* and record it in the manifest."""

    def _install(
        identity: str,
        content: Optional[str] = None,
        source: str = "",
    ):
        name = identity.rsplit("/", 1)[-1]
        skill_path = skills_dir / name
        skill_path.mkdir(parents=True, exist_ok=True)
        text = content if content is not None else skill_document(name)
        (skill_path / "SKILL.md").write_text(text, encoding="utf-8")
        return store.record_install(identity, text, str(skill_path), source=source)

    return _install


@pytest.fixture
def db():
    conn = open_database(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def ledger(db) -> SkillVersionRepository:
    return SkillVersionRepository(db)


@pytest.fixture
def advisory_repo(db) -> AdvisoryRepository:
    return AdvisoryRepository(db)


@pytest.fixture
def make_pack(tmp_path) -> Callable:
    """Build ``<tmp>/pack/skills/<dir>/SKILL.md`` entries from a mapping."""
    pack = tmp_path / "pack"

    def _make(skills: dict) -> Path:
        (pack / "skills").mkdir(parents=True, exist_ok=True)
        for dirname, content in skills.items():
            skill_path = pack / "skills" / dirname
            skill_path.mkdir(parents=True, exist_ok=True)
            if content is not None:
                (skill_path / "SKILL.md").write_text(content, encoding="utf-8")
        return pack

    return _make


def pytest_configure(config):
    """Configure pytest settings."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (may be slow)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


def pytest_collection_modifyitems(config, items):
    """Mark tests that spawn processes or run the full command boundary."""
    for item in items:
        nodeid = item.nodeid.lower()
        if "integration" in nodeid or "test_cli" in nodeid:
            item.add_marker(pytest.mark.integration)
        if "concurrent" in nodeid:
            item.add_marker(pytest.mark.slow)
