import json
import os
from pathlib import Path

import pytest

from abp_adoption.adopt import adopt_into_project, resolve_adoption_values, sync_claude_file
from abp_adoption.constants import MANAGED_BEGIN
from abp_adoption.errors import AdoptionError, ConfigError, PreconditionError
from abp_adoption.validate import validate_adoption, validation_passed
from conftest import backups_of, requires_git

EXISTING_AGENTS = "# Hand-written\n\n## Agent Role\n\nKeep this paragraph.\n"


def test_fresh_adoption_renders_and_links(project_dir: Path, standards_dir: Path) -> None:
    result = adopt_into_project(project_dir, str(standards_dir))

    assert result["operation"] == "rendered-template"
    assert result["claude_status"] == "created"
    assert result["backup_path"] is None
    assert os.readlink(project_dir / "CLAUDE.md") == "AGENTS.md"
    assert validation_passed(validate_adoption(project_dir), strict=True)


def test_node_project_scenario(project_dir: Path, standards_dir: Path) -> None:
    (project_dir / "package.json").write_text(
        json.dumps({"scripts": {"dev": "next dev", "test": "jest", "lint": "eslint ."}}),
        encoding="utf-8",
    )

    adopt_into_project(project_dir, str(standards_dir))
    text = (project_dir / "AGENTS.md").read_text(encoding="utf-8")

    assert "npm run dev" in text
    assert "npm test" in text
    assert "npm run lint" in text
    assert "TODO: set command for build" in text
    assert text.count(MANAGED_BEGIN) == 1
    assert validation_passed(validate_adoption(project_dir))


def test_existing_agents_fails_before_writing(project_dir: Path, standards_dir: Path) -> None:
    agents = project_dir / "AGENTS.md"
    agents.write_text(EXISTING_AGENTS, encoding="utf-8")

    with pytest.raises(PreconditionError, match="AGENTS.md already exists"):
        adopt_into_project(project_dir, str(standards_dir))

    assert agents.read_text(encoding="utf-8") == EXISTING_AGENTS
    assert not (project_dir / "CLAUDE.md").exists()
    assert backups_of(agents) == []


def test_force_overwrite_keeps_one_backup(project_dir: Path, standards_dir: Path) -> None:
    agents = project_dir / "AGENTS.md"
    agents.write_text(EXISTING_AGENTS, encoding="utf-8")

    result = adopt_into_project(project_dir, str(standards_dir), force=True)

    assert result["operation"] == "overwrote-existing-agents"
    backups = backups_of(agents)
    assert len(backups) == 1
    assert backups[0].read_text(encoding="utf-8") == EXISTING_AGENTS
    assert str(backups[0]) == result["backup_path"]
    assert "Keep this paragraph." not in agents.read_text(encoding="utf-8")


def test_merge_mode_preserves_content(project_dir: Path, standards_dir: Path) -> None:
    agents = project_dir / "AGENTS.md"
    agents.write_text(EXISTING_AGENTS, encoding="utf-8")

    result = adopt_into_project(
        project_dir, str(standards_dir), existing_mode="merge", claude_mode="skip"
    )

    text = agents.read_text(encoding="utf-8")
    assert result["operation"] == "merged-standards-reference"
    assert result["claude_status"] == "skipped"
    assert "Keep this paragraph." in text
    assert text.index(MANAGED_BEGIN) < text.index("## Agent Role")
    assert not (project_dir / "CLAUDE.md").exists()


def test_existing_claude_is_kept_unless_forced(
    project_dir: Path, standards_dir: Path, capsys: pytest.CaptureFixture
) -> None:
    claude = project_dir / "CLAUDE.md"
    claude.write_text("custom instructions\n", encoding="utf-8")

    result = adopt_into_project(project_dir, str(standards_dir))
    assert result["claude_status"] == "kept-existing-different"
    assert "CLAUDE.md exists and differs from AGENTS.md" in capsys.readouterr().err

    forced = adopt_into_project(project_dir, str(standards_dir), claude_mode="copy", force=True)
    assert forced["claude_status"] == "overwritten"
    assert claude.read_bytes() == (project_dir / "AGENTS.md").read_bytes()
    assert len(backups_of(claude)) == 1


def test_copy_mode_is_recognised_as_kept_copy(project_dir: Path, standards_dir: Path) -> None:
    adopt_into_project(project_dir, str(standards_dir), claude_mode="copy")
    again = adopt_into_project(
        project_dir, str(standards_dir), existing_mode="merge", claude_mode="copy"
    )
    assert again["claude_status"] == "kept-existing-copy"


def test_forced_copy_survives_failed_write(
    project_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (project_dir / "AGENTS.md").write_bytes(b"# Agents\r\n\r\nUse CRLF.\r\n")
    claude = project_dir / "CLAUDE.md"
    claude.write_text("custom instructions\n", encoding="utf-8")

    def refuse(src, dst):
        raise OSError("disk full")

    with monkeypatch.context() as m:
        m.setattr(os, "replace", refuse)
        with pytest.raises(OSError):
            sync_claude_file(project_dir, "copy", force=True)
    assert claude.read_text(encoding="utf-8") == "custom instructions\n"

    assert sync_claude_file(project_dir, "copy", force=True) == "overwritten"
    assert claude.read_bytes() == b"# Agents\r\n\r\nUse CRLF.\r\n"
    assert not claude.is_symlink()


def test_pinned_mode_requires_ref(project_dir: Path, standards_dir: Path) -> None:
    with pytest.raises(PreconditionError, match="--pinned-ref is required"):
        adopt_into_project(project_dir, str(standards_dir), adoption_mode="pinned")
    assert not (project_dir / "AGENTS.md").exists()


@requires_git
def test_pinned_mode_uses_relative_snapshot(project_dir: Path, standards_repo: Path) -> None:
    result = adopt_into_project(
        project_dir, str(standards_repo), adoption_mode="pinned", pinned_ref="v1.0.0"
    )

    relative = result["standards_path"]
    assert relative.startswith(".agentic-best-practices/pinned/v1.0.0-")
    text = (project_dir / "AGENTS.md").read_text(encoding="utf-8")
    assert f"This project follows organizational standards defined in `{relative}/`." in text

    report = validate_adoption(project_dir)
    assert validation_passed(report, strict=True), report["findings"]


@requires_git
def test_unbalanced_markers_abort_before_pinning(project_dir: Path, standards_repo: Path) -> None:
    agents = project_dir / "AGENTS.md"
    agents.write_text(f"# Mine\n\n{MANAGED_BEGIN}\n\n## Agent Role\n", encoding="utf-8")

    with pytest.raises(AdoptionError, match="unbalanced"):
        adopt_into_project(
            project_dir,
            str(standards_repo),
            adoption_mode="pinned",
            pinned_ref="v1.0.0",
            existing_mode="merge",
        )

    assert not (project_dir / ".agentic-best-practices").exists()
    assert not (project_dir / "CLAUDE.md").exists()
    assert backups_of(agents) == []


def test_missing_standards_path(project_dir: Path, tmp_path: Path) -> None:
    with pytest.raises(PreconditionError, match="Standards path does not exist"):
        adopt_into_project(project_dir, str(tmp_path / "nowhere"))


def test_bad_topics_fail_before_writing(project_dir: Path, standards_dir: Path) -> None:
    with pytest.raises(ConfigError):
        adopt_into_project(project_dir, str(standards_dir), {"standards_topics": "no-pipe"})
    assert not (project_dir / "AGENTS.md").exists()


def test_cli_values_override_config_file(tmp_path: Path) -> None:
    config = tmp_path / "adoption.env"
    config.write_text(
        "PROJECT_NAME='From Config'\nAGENT_ROLE=config role\nBUILD_CMD=\"make dist\"\n",
        encoding="utf-8",
    )

    values = resolve_adoption_values(config, agent_role="cli role", project_name=None)

    assert values == {
        "project_name": "From Config",
        "agent_role": "cli role",
        "build_cmd": "make dist",
    }
