"""Tests for section diffing, change classification and update risk."""

from pathlib import Path

import pytest

from skillwarden.diff import (
    classify_change,
    diff_documents,
    diff_sections,
    extract_dependencies,
    extract_sections,
)
from skillwarden.hashing import compute_hash
from skillwarden.models import ChangeType, Severity
from skillwarden.risk import compute_update_risk, detect_modifications

BASE = """---
name: demo
version: 1.2.0
---

# Demo

Intro text.

## Usage

Run the demo.

## Configuration

Set DEMO_HOME.

### Advanced

Tune the cache.
"""


class TestExtractSections:
    def test_h2_and_h3_are_sections_h1_is_not(self):
        sections = extract_sections(BASE)
        assert list(sections) == ["usage", "configuration", "advanced"]
        assert sections["usage"].body == "Run the demo."
        assert sections["advanced"].level == 3

    def test_h2_body_includes_nested_h3(self):
        body = extract_sections(BASE)["configuration"].body
        assert "Set DEMO_HOME." in body
        assert "### Advanced" in body
        assert "Tune the cache." in body

    def test_keys_are_case_insensitive_titles_keep_spelling(self):
        sections = extract_sections("## Quick Start\n\ntext\n")
        assert "quick start" in sections
        assert sections["quick start"].title == "Quick Start"

    def test_headings_inside_code_fences_are_ignored(self):
        doc = "## Example\n\n```bash\n## not a heading\n```\n"
        sections = extract_sections(doc)
        assert list(sections) == ["example"]
        assert "## not a heading" in sections["example"].body

    def test_document_without_headings(self):
        assert extract_sections("just text\n") == {}

    def test_crlf_line_endings(self):
        sections = extract_sections("## Usage\r\n\r\nRun it.\r\n")
        assert sections["usage"].body == "Run it."


class TestDiffSections:
    def test_identical_documents_have_no_changes(self):
        result = diff_sections(BASE, BASE)
        assert result.added == []
        assert result.removed == []
        assert result.modified == []
        assert result.is_empty

    def test_rename_is_add_plus_remove(self):
        renamed = BASE.replace("## Usage", "## How To Use")
        result = diff_sections(BASE, renamed)
        assert result.removed == ["Usage"]
        assert result.added == ["How To Use"]
        assert result.modified == []

    def test_body_only_change_is_modified(self):
        changed = BASE.replace("Run the demo.", "Run the demo twice.")
        result = diff_sections(BASE, changed)
        assert result.modified == ["Usage"]
        assert result.added == [] and result.removed == []

    def test_h3_change_also_modifies_parent_h2(self):
        changed = BASE.replace("Tune the cache.", "Tune the pool.")
        result = diff_sections(BASE, changed)
        assert result.modified == ["Configuration", "Advanced"]

    def test_heading_case_change_is_not_a_change(self):
        changed = BASE.replace("## Usage", "## USAGE")
        assert diff_sections(BASE, changed).is_empty

    def test_whitespace_around_body_is_ignored(self):
        changed = BASE.replace("Run the demo.\n", "Run the demo.\n\n\n")
        assert diff_sections(BASE, changed).is_empty

    def test_total_changes(self):
        changed = BASE.replace("## Usage", "## Use").replace("Set DEMO_HOME.", "Set HOME.")
        assert diff_sections(BASE, changed).total_changes == 3


class TestExtractDependencies:
    def test_from_front_matter_list(self):
        doc = "---\nname: x\ndependencies:\n  - git\n  - Node\n---\nbody\n"
        assert extract_dependencies(doc) == {"git", "node"}

    def test_from_front_matter_string(self):
        doc = "---\nname: x\nrequires: git, node\n---\nbody\n"
        assert extract_dependencies(doc) == {"git", "node"}

    def test_from_dependencies_section(self):
        doc = "## Dependencies\n\n- jq\n- curl (optional)\n\n## Usage\n\n- not-a-dep\n"
        assert extract_dependencies(doc) == {"jq", "curl"}


class TestClassifyChange:
    def test_declared_semver_major_bump(self):
        new = BASE.replace("version: 1.2.0", "version: 2.0.0")
        assert classify_change(BASE, new) == ChangeType.MAJOR

    def test_declared_semver_minor_bump_wins_over_removed_heading(self):
        new = BASE.replace("version: 1.2.0", "version: 1.3.0").replace("## Usage\n\nRun the demo.\n", "")
        assert classify_change(BASE, new) == ChangeType.MINOR

    def test_declared_semver_patch(self):
        new = BASE.replace("version: 1.2.0", "version: 1.2.1")
        assert classify_change(BASE, new) == ChangeType.PATCH

    def test_removed_heading_is_major(self):
        new = BASE.replace("## Usage\n\nRun the demo.\n", "")
        assert classify_change(BASE, new) == ChangeType.MAJOR

    def test_added_heading_is_minor(self):
        new = BASE + "\n## Troubleshooting\n\nRestart.\n"
        assert classify_change(BASE, new) == ChangeType.MINOR

    def test_removed_dependency_is_major(self):
        old = BASE + "\n## Dependencies\n\n- jq\n- curl\n"
        new = BASE + "\n## Dependencies\n\n- jq\n"
        assert classify_change(old, new) == ChangeType.MAJOR

    def test_large_risk_jump_is_major(self):
        new = BASE.replace("Run the demo.", "Run the demo as root.")
        assert classify_change(BASE, new, old_risk_score=10, new_risk_score=40) == ChangeType.MAJOR

    def test_body_edit_is_patch(self):
        new = BASE.replace("Run the demo.", "Run the demo carefully.")
        assert classify_change(BASE, new) == ChangeType.PATCH


class TestDiffDocuments:
    def test_hashes_and_label(self):
        new = BASE + "\n## Extra\n\nMore.\n"
        result = diff_documents("acme/demo", BASE, new)
        assert result.skill == "acme/demo"
        assert result.old_hash == compute_hash(BASE)
        assert result.new_hash == compute_hash(new)
        assert result.change_type == ChangeType.MINOR
        assert result.sections.added == ["Extra"]

    def test_custom_classifier(self):
        result = diff_documents("acme/demo", BASE, BASE, classifier=lambda o, n: ChangeType.MAJOR)
        assert result.change_type == ChangeType.MAJOR

    def test_failing_classifier_still_returns_diff(self):
        def _broken(old, new):
            raise RuntimeError("no model")

        changed = BASE.replace("Run the demo.", "Run it.")
        result = diff_documents("acme/demo", BASE, changed, classifier=_broken)
        assert result.change_type == ChangeType.UNKNOWN
        assert result.sections.modified == ["Usage"]

    def test_no_classifier(self):
        assert diff_documents("acme/demo", BASE, BASE, classifier=None).change_type == ChangeType.UNKNOWN


class TestUpdateRisk:
    @pytest.mark.parametrize(
        "kwargs, score, level, recommendation",
        [
            ({"change_type": ChangeType.PATCH}, 0, Severity.LOW, "auto-update"),
            ({"change_type": ChangeType.MAJOR}, 30, Severity.MEDIUM, "review-then-update"),
            (
                {"change_type": ChangeType.MAJOR, "risk_score_delta": 5, "has_local_modifications": True},
                70, Severity.CRITICAL, "manual-review-required",
            ),
            (
                {"change_type": ChangeType.MAJOR, "has_local_modifications": True},
                50, Severity.HIGH, "review-then-update",
            ),
            (
                {"change_type": ChangeType.MINOR, "trust_tier": "verified", "has_changelog": True},
                -30, Severity.LOW, "auto-update",
            ),
        ],
    )
    def test_scoring_table(self, kwargs, score, level, recommendation):
        risk = compute_update_risk(**kwargs)
        assert risk.score == score
        assert risk.level == level
        assert risk.recommendation == recommendation

    def test_negative_risk_delta_adds_nothing(self):
        assert compute_update_risk(ChangeType.PATCH, risk_score_delta=-5).score == 0

    def test_unknown_trust_tier(self):
        with pytest.raises(ValueError):
            compute_update_risk(ChangeType.PATCH, trust_tier="gold")


class TestDetectModifications:
    def test_unmodified(self, tmp_path):
        (tmp_path / "SKILL.md").write_text("v1", encoding="utf-8")
        result = detect_modifications(tmp_path, compute_hash("v1"))
        assert result.modified is False
        assert result.current_hash == compute_hash("v1")

    def test_modified(self, tmp_path):
        (tmp_path / "SKILL.md").write_text("v1 edited", encoding="utf-8")
        assert detect_modifications(tmp_path, compute_hash("v1")).modified is True

    def test_missing_document_counts_as_modified(self, tmp_path):
        result = detect_modifications(Path(tmp_path / "gone"), compute_hash("v1"))
        assert result.modified is True
        assert result.current_hash == ""
