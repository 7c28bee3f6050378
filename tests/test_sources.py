"""Tests for content resolution and the diff operation."""

import httpx
import pytest

from skillwarden.errors import NotFoundError, ResolutionError, SkillNotFoundError, StorageError
from skillwarden.models import ChangeType, Severity
from skillwarden.sources import ContentResolver, build_raw_url, diff_skill, fetch_text

from conftest import skill_document


class TestBuildRawUrl:
    @pytest.mark.parametrize(
        "source, expected",
        [
            (
                "https://github.com/acme/skills",
                "https://raw.githubusercontent.com/acme/skills/main/SKILL.md",
            ),
            (
                "https://github.com/acme/skills.git",
                "https://raw.githubusercontent.com/acme/skills/main/SKILL.md",
            ),
            (
                "https://github.com/acme/skills/tree/v2/skills/demo",
                "https://raw.githubusercontent.com/acme/skills/v2/skills/demo/SKILL.md",
            ),
            (
                "https://github.com/acme/skills/blob/dev/demo/SKILL.md",
                "https://raw.githubusercontent.com/acme/skills/dev/demo/SKILL.md",
            ),
            (
                "https://raw.githubusercontent.com/acme/skills/main/SKILL.md",
                "https://raw.githubusercontent.com/acme/skills/main/SKILL.md",
            ),
        ],
    )
    def test_github_shapes(self, source, expected):
        assert build_raw_url(source) == expected

    def test_default_branch_override(self):
        url = build_raw_url("https://github.com/acme/skills", default_branch="trunk")
        assert url == "https://raw.githubusercontent.com/acme/skills/trunk/SKILL.md"

    @pytest.mark.parametrize(
        "source",
        ["acme/skills", "https://gitlab.com/acme/skills", "ftp://github.com/acme/skills", "https://github.com/acme"],
    )
    def test_rejected_sources(self, source):
        with pytest.raises(ResolutionError):
            build_raw_url(source)


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestFetchText:
    def test_success(self):
        client = _client(lambda request: httpx.Response(200, text="# doc"))
        assert fetch_text("https://raw.githubusercontent.com/a/b/main/SKILL.md", client=client) == "# doc"

    def test_http_error_status_carries_url(self):
        url = "https://raw.githubusercontent.com/a/b/main/SKILL.md"
        client = _client(lambda request: httpx.Response(404, text="nope"))
        with pytest.raises(ResolutionError) as excinfo:
            fetch_text(url, client=client)
        assert excinfo.value.url == url
        assert "404" in str(excinfo.value)

    def test_timeout(self):
        def _slow(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(ResolutionError, match="Timed out"):
            fetch_text("https://raw.githubusercontent.com/a/b/main/SKILL.md", client=_client(_slow))

    def test_connection_error(self):
        def _down(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ResolutionError):
            fetch_text("https://raw.githubusercontent.com/a/b/main/SKILL.md", client=_client(_down))

    def test_caller_client_is_not_closed(self):
        client = _client(lambda request: httpx.Response(200, text="ok"))
        fetch_text("https://raw.githubusercontent.com/a/b/main/SKILL.md", client=client)
        assert not client.is_closed


class TestContentResolver:
    def test_old_side_reads_installed_document(self, store, skills_dir, install_skill):
        install_skill("acme/demo", content="installed")
        resolver = ContentResolver(store, skills_dir)
        assert resolver.resolve_old("acme/demo") == "installed"

    def test_old_side_missing_document(self, store, skills_dir):
        resolver = ContentResolver(store, skills_dir)
        with pytest.raises(NotFoundError):
            resolver.resolve_old("acme/ghost")

    def test_overrides_never_fetch(self, store, skills_dir, tmp_path):
        (tmp_path / "old.md").write_text("old", encoding="utf-8")
        (tmp_path / "new.md").write_text("new", encoding="utf-8")

        def _no_network(url):
            raise AssertionError("network used")

        resolver = ContentResolver(store, skills_dir, fetcher=_no_network)
        assert resolver.resolve_old("acme/ghost", tmp_path / "old.md") == "old"
        assert resolver.resolve_new("acme/ghost", tmp_path / "new.md") == "new"

    def test_unreadable_override(self, store, skills_dir, tmp_path):
        resolver = ContentResolver(store, skills_dir)
        with pytest.raises(ResolutionError):
            resolver.resolve_new("acme/demo", tmp_path / "missing.md")

    def test_binary_override_is_a_resolution_error(self, store, skills_dir, tmp_path):
        override = tmp_path / "new.md"
        override.write_bytes(b"## Usage\n\xff\xfe\x00")
        resolver = ContentResolver(store, skills_dir)
        with pytest.raises(ResolutionError, match="new.md"):
            resolver.resolve_new("acme/demo", override)

    def test_installed_document_replaced_by_directory(self, store, skills_dir, install_skill):
        install_skill("acme/demo")
        document = skills_dir / "demo" / "SKILL.md"
        document.unlink()
        document.mkdir()
        resolver = ContentResolver(store, skills_dir)
        with pytest.raises(StorageError):
            resolver.resolve_old("acme/demo")

    def test_undecodable_installed_document(self, store, skills_dir, install_skill):
        install_skill("acme/demo")
        (skills_dir / "demo" / "SKILL.md").write_bytes(b"\xff\xfe not utf-8")
        with pytest.raises(StorageError):
            ContentResolver(store, skills_dir).resolve_old("acme/demo")

    def test_new_side_fetches_from_source(self, store, skills_dir, install_skill):
        install_skill("acme/demo", source="https://github.com/acme/demo")
        fetched = []

        def _fetch(url):
            fetched.append(url)
            return "latest"

        resolver = ContentResolver(store, skills_dir, fetcher=_fetch)
        assert resolver.resolve_new("acme/demo") == "latest"
        assert fetched == ["https://raw.githubusercontent.com/acme/demo/main/SKILL.md"]

    def test_new_side_unknown_skill(self, store, skills_dir):
        with pytest.raises(SkillNotFoundError):
            ContentResolver(store, skills_dir).resolve_new("acme/ghost")

    def test_new_side_without_source(self, store, skills_dir, install_skill):
        install_skill("acme/demo", source="")
        with pytest.raises(ResolutionError, match="no recorded source"):
            ContentResolver(store, skills_dir).resolve_new("acme/demo")


class TestDiffSkill:
    def test_diff_against_fetched_latest(self, store, skills_dir, install_skill):
        old = skill_document("demo", "1.0.0")
        new = old + "\n## Troubleshooting\n\nRestart it.\n"
        install_skill("acme/demo", content=old, source="https://github.com/acme/demo")

        resolver = ContentResolver(store, skills_dir, fetcher=lambda url: new)
        result = diff_skill(resolver, "acme/demo")
        assert result.sections.added == ["Troubleshooting"]
        assert result.change_type == ChangeType.MINOR
        assert result.risk is not None
        assert result.risk.level == Severity.LOW

    def test_local_modifications_raise_risk(self, store, skills_dir, install_skill, tmp_path):
        old = skill_document("demo", "1.0.0")
        install_skill("acme/demo", content=old)
        (skills_dir / "demo" / "SKILL.md").write_text(old + "\nlocal edit\n", encoding="utf-8")
        (tmp_path / "new.md").write_text(old.replace("## Usage", "## Use"), encoding="utf-8")

        result = diff_skill(ContentResolver(store, skills_dir), "acme/demo", new_override=tmp_path / "new.md")
        assert result.change_type == ChangeType.MAJOR
        assert result.risk.score == 50
        assert result.risk.recommendation == "review-then-update"

    def test_fetch_failure_surfaces_url(self, store, skills_dir, install_skill):
        install_skill("acme/demo", source="https://github.com/acme/demo")

        def _fail(url):
            raise ResolutionError(f"HTTP 500 fetching {url}", url=url)

        with pytest.raises(ResolutionError) as excinfo:
            diff_skill(ContentResolver(store, skills_dir, fetcher=_fail), "acme/demo")
        assert excinfo.value.url.endswith("/acme/demo/main/SKILL.md")

    def test_unreadable_installed_copy_fails_modification_check(
        self, store, skills_dir, install_skill, tmp_path
    ):
        install_skill("acme/demo")
        document = skills_dir / "demo" / "SKILL.md"
        document.unlink()
        document.mkdir()
        (tmp_path / "old.md").write_text("old", encoding="utf-8")
        (tmp_path / "new.md").write_text("new", encoding="utf-8")

        with pytest.raises(StorageError):
            diff_skill(
                ContentResolver(store, skills_dir),
                "acme/demo",
                old_override=tmp_path / "old.md",
                new_override=tmp_path / "new.md",
            )
