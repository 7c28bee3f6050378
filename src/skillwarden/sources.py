"""
Content resolution for skill diffs.

The "old" side of a diff defaults to the installed SKILL.md, the "new" side
to the latest document fetched from the skill's declared source.  Either side
may be overridden with a local file, which never touches the network.

Only GitHub-hosted sources are fetchable: repository URLs are translated to
``raw.githubusercontent.com`` URLs and anything else is rejected up front.
Fetches are single-shot with an explicit timeout; failures surface immediately.
"""

import logging
import re
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlparse

import httpx

from .diff import Classifier, classify_change, diff_documents
from .errors import NotFoundError, ResolutionError, SkillNotFoundError, StorageError
from .frontmatter import SKILL_FILENAME
from .manifest import ManifestStore
from .models import DiffResult, ManifestEntry
from .risk import compute_update_risk, detect_modifications

logger = logging.getLogger(__name__)

RAW_HOST = "raw.githubusercontent.com"
GITHUB_HOSTS = ("github.com", "www.github.com")
DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_BRANCH = "main"

_GITHUB_PATH_RE = re.compile(
    r"^/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?"
    r"(?:/(?P<kind>tree|blob)/(?P<ref>[^/]+)(?P<path>/.*)?)?/?$"
)

Fetcher = Callable[[str], str]


def build_raw_url(source: str, default_branch: str = DEFAULT_BRANCH) -> str:
    """Translate a skill source into a raw-content URL for its SKILL.md.

    Accepted shapes::

        https://raw.githubusercontent.com/...            (returned unchanged)
        https://github.com/<owner>/<repo>
        https://github.com/<owner>/<repo>/tree/<ref>[/<dir>]
        https://github.com/<owner>/<repo>/blob/<ref>/<path>/SKILL.md

    Raises :class:`ResolutionError` for anything else.
    """
    parsed = urlparse(source.strip())
    host = (parsed.hostname or "").lower()

    if parsed.scheme == "https" and host == RAW_HOST:
        return source.strip()

    if parsed.scheme not in ("http", "https") or host not in GITHUB_HOSTS:
        raise ResolutionError(
            f"Source {source!r} is not a GitHub repository URL; "
            "supply the new content from a file instead",
        )

    match = _GITHUB_PATH_RE.match(parsed.path)
    if not match:
        raise ResolutionError(f"Unrecognised GitHub URL shape: {source!r}")

    owner, repo = match.group("owner"), match.group("repo")
    ref = match.group("ref") or default_branch
    path = (match.group("path") or "").strip("/")

    if match.group("kind") == "blob":
        if not path:
            raise ResolutionError(f"GitHub blob URL has no file path: {source!r}")
        return f"https://{RAW_HOST}/{owner}/{repo}/{ref}/{path}"

    if path.endswith(SKILL_FILENAME):
        path = path[: -len(SKILL_FILENAME)].rstrip("/")
    file_path = f"{path}/{SKILL_FILENAME}" if path else SKILL_FILENAME
    return f"https://{RAW_HOST}/{owner}/{repo}/{ref}/{file_path}"


def fetch_text(
    url: str,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    client: Optional[httpx.Client] = None,
) -> str:
    """GET *url* once and return its body, raising :class:`ResolutionError`."""
    owns_client = client is None
    http = client or httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        response = http.get(url, headers={"Accept": "text/plain"}, timeout=timeout)
    except httpx.TimeoutException as exc:
        raise ResolutionError(f"Timed out after {timeout:.0f}s fetching {url}", url=url) from exc
    except httpx.HTTPError as exc:
        raise ResolutionError(f"Failed to fetch {url}: {exc}", url=url) from exc
    finally:
        if owns_client:
            http.close()

    if response.status_code != 200:
        raise ResolutionError(f"HTTP {response.status_code} fetching {url}", url=url)
    return response.text


class ContentResolver:
    """Resolves the old and new documents for a diff."""

    def __init__(
        self,
        store: ManifestStore,
        skills_dir: Path,
        fetcher: Optional[Fetcher] = None,
        default_branch: str = DEFAULT_BRANCH,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self.store = store
        self.skills_dir = Path(skills_dir)
        self.default_branch = default_branch
        self.timeout = timeout
        self._fetch = fetcher or (lambda url: fetch_text(url, timeout=self.timeout))

    @staticmethod
    def read_override(path: Path) -> str:
        try:
            return Path(path).expanduser().read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ResolutionError(f"Cannot read content file {path}: {exc}") from exc

    def installed_document_path(self, identity: str, entry: Optional[ManifestEntry] = None) -> Path:
        if entry is not None and entry.install_path:
            return Path(entry.install_path) / SKILL_FILENAME
        return self.skills_dir / identity.rsplit("/", 1)[-1] / SKILL_FILENAME

    def resolve_old(self, identity: str, override: Optional[Path] = None) -> str:
        if override is not None:
            return self.read_override(override)
        entry = self.store.get_entry(identity)
        path = self.installed_document_path(identity, entry)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise NotFoundError(
                f'Skill "{identity}" is not installed or {SKILL_FILENAME} not found at {path}'
            ) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Cannot read installed {SKILL_FILENAME} at {path}: {exc}") from exc

    def resolve_new(self, identity: str, override: Optional[Path] = None) -> str:
        if override is not None:
            return self.read_override(override)
        entry = self.store.get_entry(identity)
        if entry is None:
            raise SkillNotFoundError(identity)
        if not entry.source:
            raise ResolutionError(f'Skill "{identity}" has no recorded source to fetch from')
        url = build_raw_url(entry.source, self.default_branch)
        logger.debug("Fetching latest %s from %s", identity, url)
        return self._fetch(url)


def diff_skill(
    resolver: ContentResolver,
    identity: str,
    old_override: Optional[Path] = None,
    new_override: Optional[Path] = None,
    classifier: Optional[Classifier] = classify_change,
    trust_tier: str = "community",
) -> DiffResult:
    """Section diff between the installed and latest versions of *identity*."""
    old_content = resolver.resolve_old(identity, old_override)
    new_content = resolver.resolve_new(identity, new_override)

    result = diff_documents(identity, old_content, new_content, classifier=classifier)

    entry = resolver.store.get_entry(identity)
    local_mods = False
    if entry is not None and entry.original_content_hash:
        local_mods = detect_modifications(
            Path(entry.install_path), entry.original_content_hash
        ).modified
    result.risk = compute_update_risk(
        result.change_type,
        has_local_modifications=local_mods,
        trust_tier=trust_tier,
    )
    return result
