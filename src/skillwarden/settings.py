"""
Central settings for skillwarden.

Reads configuration from ``~/.config/skillwarden/config.toml`` (POSIX) or
``%APPDATA%/skillwarden/config.toml`` (Windows).  Environment variables
override config-file values.

Only the command boundary (CLI and MCP tools) reads settings; the core
objects take explicit paths in their constructors.

Usage::

    from .settings import get_settings
    settings = get_settings()
    print(settings.manifest_path)
"""

import logging
import os
import platform
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)


def _default_config_dir() -> Path:
    """Return the platform-appropriate config directory."""
    if platform.system() == "Windows":
        appdata = os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming"))
        return Path(appdata) / "skillwarden"
    return Path.home() / ".config" / "skillwarden"


def _default_config_path() -> Path:
    return _default_config_dir() / "config.toml"


def _default_home() -> Path:
    return Path.home() / ".skillwarden"


@dataclass
class Settings:
    """Resolved skillwarden settings (config file + env var overrides)."""

    # [paths]
    home: Path = field(default_factory=_default_home)
    manifest: Optional[Path] = None
    database: Optional[Path] = None
    skills_dir: Path = field(default_factory=lambda: Path.home() / ".claude" / "skills")

    # [lock]
    lock_stale_seconds: float = 30.0
    lock_retry_interval_ms: int = 100
    lock_max_attempts: int = 300

    # [registry]
    namespace: Optional[str] = None
    fetch_timeout_seconds: float = 10.0
    default_branch: str = "main"

    # Path to the config file that was loaded (empty string if none)
    _config_file: str = ""

    @property
    def manifest_path(self) -> Path:
        return self.manifest or self.home / "manifest.json"

    @property
    def database_path(self) -> Path:
        return self.database or self.home / "skills.db"


# Module-level singleton
_settings: Optional[Settings] = None


def _as_path(raw: Any) -> Optional[Path]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    return Path(raw.strip()).expanduser()


def _as_number(raw: Any, default: float) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw <= 0:
        return default
    return raw


def _apply_file(settings: Settings, data: Dict[str, Any]) -> None:
    paths = data.get("paths", {})
    settings.home = _as_path(paths.get("home")) or settings.home
    settings.manifest = _as_path(paths.get("manifest")) or settings.manifest
    settings.database = _as_path(paths.get("database")) or settings.database
    settings.skills_dir = _as_path(paths.get("skills_dir")) or settings.skills_dir

    lock = data.get("lock", {})
    settings.lock_stale_seconds = float(
        _as_number(lock.get("stale_seconds"), settings.lock_stale_seconds)
    )
    settings.lock_retry_interval_ms = int(
        _as_number(lock.get("retry_interval_ms"), settings.lock_retry_interval_ms)
    )
    settings.lock_max_attempts = int(
        _as_number(lock.get("max_attempts"), settings.lock_max_attempts)
    )

    registry = data.get("registry", {})
    namespace = registry.get("namespace")
    if isinstance(namespace, str) and namespace.strip():
        settings.namespace = namespace.strip()
    settings.fetch_timeout_seconds = float(
        _as_number(registry.get("fetch_timeout_seconds"), settings.fetch_timeout_seconds)
    )
    branch = registry.get("default_branch")
    if isinstance(branch, str) and branch.strip():
        settings.default_branch = branch.strip()


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from config file, then apply env var overrides."""
    settings = Settings()
    path = config_path or _default_config_path()

    # --- Read config file ---
    if path.is_file():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
            _apply_file(settings, data)
            settings._config_file = str(path)
            logger.debug("Loaded settings from %s", path)
        except (OSError, tomllib.TOMLDecodeError, AttributeError):
            logger.warning("Failed to parse config file %s, using defaults", path, exc_info=True)
            settings = Settings()

    # --- Env var overrides (take priority over config file) ---
    env_home = _as_path(os.environ.get("SKILLWARDEN_HOME"))
    if env_home:
        settings.home = env_home

    env_manifest = _as_path(os.environ.get("SKILLWARDEN_MANIFEST"))
    if env_manifest:
        settings.manifest = env_manifest

    env_db = _as_path(os.environ.get("SKILLWARDEN_DB"))
    if env_db:
        settings.database = env_db

    env_skills = _as_path(os.environ.get("SKILLWARDEN_SKILLS_DIR"))
    if env_skills:
        settings.skills_dir = env_skills

    env_namespace = os.environ.get("SKILLWARDEN_NAMESPACE", "").strip()
    if env_namespace:
        settings.namespace = env_namespace

    return settings


def get_settings() -> Settings:
    """Return the cached Settings singleton, loading on first call."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the singleton so the next ``get_settings()`` reloads from disk."""
    global _settings
    _settings = None


DEFAULT_CONFIG_TOML = """\
# skillwarden configuration

[paths]
# home = "~/.skillwarden"
# manifest = "~/.skillwarden/manifest.json"
# database = "~/.skillwarden/skills.db"
# skills_dir = "~/.claude/skills"

[lock]
stale_seconds = 30
retry_interval_ms = 100
max_attempts = 300

[registry]
# Owner used to map bundled pack skills to registry identities (owner/name)
# namespace = ""
fetch_timeout_seconds = 10
default_branch = "main"
"""
