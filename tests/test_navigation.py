from pathlib import Path

import pytest
from click.testing import CliRunner

from abp_adoption.errors import PreconditionError
from abp_adoption.main import cli
from abp_adoption.navigation import heading_anchors, slugify, validate_navigation

GUIDE = """\
# Logging

## Contents

| Section | Purpose |
| --- | --- |
| [Levels](#levels) | When to use each level |
| [Fields](#structured-fields) | What to attach |

## Levels

See [fields](#structured-fields).

## Structured Fields

```markdown
| [Not a row](#ignored) |
[broken](#inside-code)
```
"""


def _messages(report) -> list:
    return [f["message"] for f in report["findings"]]


@pytest.fixture
def standards(tmp_path: Path) -> Path:
    root = tmp_path / "standards"
    guide = root / "guides/logging/logging.md"
    guide.parent.mkdir(parents=True)
    guide.write_text(GUIDE, encoding="utf-8")
    index = "| [Logging](guides/logging/logging.md) | Log levels and fields |\n"
    (root / "AGENTS.md").write_text("# Guide Index\n\n" + index, encoding="utf-8")
    (root / "README.md").write_text("# Standards\n\n" + index, encoding="utf-8")
    return root


def test_clean_navigation(standards: Path) -> None:
    report = validate_navigation(standards)
    assert _messages(report) == []


def test_unindexed_guide_and_dead_link(standards: Path) -> None:
    extra = standards / "adoption/pilot.md"
    extra.parent.mkdir()
    extra.write_text("# Pilot\n\n## Contents\n", encoding="utf-8")
    with (standards / "README.md").open("a", encoding="utf-8") as handle:
        handle.write("See [old](guides/old/old.md) and [site](https://example.com/x.md).\n")

    messages = _messages(validate_navigation(standards))

    assert "Guide 'adoption/pilot.md' not in AGENTS.md Guide Index" in messages
    assert "Guide 'adoption/pilot.md' not linked in README.md" in messages
    assert "README.md links to non-existent file: guides/old/old.md" in messages
    assert not any("example.com" in m for m in messages)


def test_guide_structure_warnings(standards: Path) -> None:
    guide = standards / "guides/logging/logging.md"
    guide.write_text(
        "# Logging\n\n## Contents\n\n| [A](#a) |\n| [B](#b) |\n\n## A\n\nJump to [missing](#nowhere).\n",
        encoding="utf-8",
    )

    report = validate_navigation(standards)

    assert report["errors"] == 0
    assert _messages(report) == [
        "guides/logging/logging.md Contents may have stale entries (H2s: 1, Contents: 2)",
        "guides/logging/logging.md may have broken anchor: #b",
        "guides/logging/logging.md may have broken anchor: #nowhere",
    ]


def test_missing_contents_table(standards: Path) -> None:
    (standards / "guides/logging/logging.md").write_text("# Logging\n\n## Levels\n", encoding="utf-8")
    assert _messages(validate_navigation(standards)) == ["guides/logging/logging.md has no Contents table"]


def test_slugs() -> None:
    assert slugify("Error Handling (Python)") == "error-handling-python"
    assert slugify("--- Notes ---") == "notes"
    assert heading_anchors("## Setup\n### Setup\n## Other\n## Setup\n") == ["setup", "setup-1", "other", "setup-2"]


def test_missing_standards_path(tmp_path: Path) -> None:
    with pytest.raises(PreconditionError):
        validate_navigation(tmp_path / "absent")


def test_cli_strict(standards: Path) -> None:
    (standards / "guides/logging/logging.md").write_text("# Logging\n", encoding="utf-8")
    runner = CliRunner()
    args = ["validate-navigation", "--standards-path", str(standards)]

    assert runner.invoke(cli, args).exit_code == 0
    result = runner.invoke(cli, [*args, "--strict"])
    assert result.exit_code == 1
    assert "WARN: guides/logging/logging.md has no Contents table" in result.output
