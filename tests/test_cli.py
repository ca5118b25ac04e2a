import os
from pathlib import Path

from click.testing import CliRunner

from abp_adoption.main import cli
from conftest import requires_git


def _adopt(runner: CliRunner, project: Path, standards: Path, *extra: str):
    return runner.invoke(
        cli,
        ["adopt-into-project", "--project-dir", str(project), "--standards-path", str(standards), *extra],
    )


def test_adopt_then_validate(project_dir: Path, standards_dir: Path) -> None:
    runner = CliRunner()

    result = _adopt(runner, project_dir, standards_dir)
    assert result.exit_code == 0, result.output
    assert "Adoption bootstrap complete (rendered-template)." in result.output
    assert "abp validate-adoption --project-dir" in result.output

    result = runner.invoke(
        cli,
        [
            "validate-adoption",
            "--project-dir", str(project_dir),
            "--expect-standards-path", str(standards_dir),
            "--strict",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "Validation passed." in result.output


def test_existing_agents_exits_1(project_dir: Path, standards_dir: Path) -> None:
    (project_dir / "AGENTS.md").write_text("# Mine\n", encoding="utf-8")

    result = _adopt(CliRunner(), project_dir, standards_dir)

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "AGENTS.md already exists" in result.output
    assert (project_dir / "AGENTS.md").read_text(encoding="utf-8") == "# Mine\n"


def test_usage_errors_exit_1(standards_dir: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["adopt-into-project", "--standards-path", str(standards_dir)])
    assert result.exit_code == 1
    assert "--project-dir" in result.output

    result = runner.invoke(cli, ["adopt-into-project", "--project-dir", ".", "--adoption-mode", "nightly"])
    assert result.exit_code == 1


def test_validate_reports_failure(project_dir: Path) -> None:
    result = CliRunner().invoke(cli, ["validate-adoption", "--project-dir", str(project_dir)])

    assert result.exit_code == 1
    assert "ERROR: AGENTS.md not found" in result.output
    assert "FAIL" in result.output


def test_merge_twice_reports_no_changes(project_dir: Path, standards_dir: Path) -> None:
    (project_dir / "AGENTS.md").write_text("# Mine\n\n## Agent Role\n\nShip it.\n", encoding="utf-8")
    runner = CliRunner()
    args = ["merge-standards-reference", "--project-dir", str(project_dir), "--standards-path", str(standards_dir)]

    first = runner.invoke(cli, args)
    assert first.exit_code == 0, first.output
    assert "Merged managed standards reference block." in first.output

    second = runner.invoke(cli, args)
    assert second.exit_code == 0, second.output
    assert "No changes needed:" in second.output


HAND_WRITTEN_AGENTS = """\
# AGENTS.md

## Agent Role

You are a maintainer.

## Tech Stack

| Layer | Technology | Version |
| --- | --- | --- |
| Language | TypeScript | 5.x |

## Key Commands

```bash
npm test
npm run lint
```

## Boundaries

| Level | Action | Why |
| --- | --- | --- |
| **Always** | Run lint | Quality gate |
| **Never** | Commit secrets | Security |
"""


def test_hand_written_agents_passes_strict_after_merge(project_dir: Path, standards_dir: Path) -> None:
    agents = project_dir / "AGENTS.md"
    agents.write_text(HAND_WRITTEN_AGENTS, encoding="utf-8")
    runner = CliRunner()
    validate_args = [
        "validate-adoption",
        "--project-dir", str(project_dir),
        "--expect-standards-path", str(standards_dir),
        "--strict",
    ]

    before = runner.invoke(cli, validate_args)
    assert before.exit_code == 1
    assert "Missing required section: ## Standards Reference" in before.output

    for _ in range(2):
        result = _adopt(runner, project_dir, standards_dir, "--existing-mode", "merge")
        assert result.exit_code == 0, result.output

    text = agents.read_text(encoding="utf-8")
    assert text.count("<!-- BEGIN MANAGED: STANDARDS_REFERENCE -->") == 1
    assert text.count("## Standards Reference") == 1
    assert "You are a maintainer." in text

    after = runner.invoke(cli, validate_args)
    assert after.exit_code == 0, after.output
    assert "Validation passed." in after.output


def test_standards_path_from_environment(project_dir: Path, standards_dir: Path, monkeypatch) -> None:
    monkeypatch.setenv("AGENTIC_BEST_PRACTICES_HOME", str(standards_dir))

    result = CliRunner().invoke(cli, ["adopt-into-project", "--project-dir", str(project_dir)])

    assert result.exit_code == 0, result.output
    assert str(standards_dir) in (project_dir / "AGENTS.md").read_text(encoding="utf-8")


@requires_git
def test_pin_print_relative_only(project_dir: Path, standards_repo: Path) -> None:
    result = CliRunner().invoke(
        cli,
        [
            "pin-standards-version",
            "--project-dir", str(project_dir),
            "--standards-path", str(standards_repo),
            "--pinned-ref", "v1.0.0",
            "--print-relative-only",
        ],
    )

    assert result.exit_code == 0, result.output
    relative = result.output.strip()
    assert relative.startswith(".agentic-best-practices/pinned/v1.0.0-")
    assert (project_dir / relative / "README.md").is_file()


def test_pilot_flow(project_dir: Path, standards_dir: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        cli,
        [
            "prepare-pilot-project",
            "--project-dir", str(project_dir),
            "--standards-path", str(standards_dir),
            "--pilot-owner", "Dana",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "Pilot preparation complete." in result.output

    result = runner.invoke(cli, ["check-pilot-readiness", "--project-dir", str(project_dir), "--strict"])
    assert result.exit_code == 1
    assert "Weekly check-ins below target" in result.output

    result = runner.invoke(
        cli, ["summarize-pilot-findings", "--project-dir", str(project_dir), "--print-only"]
    )
    assert result.exit_code == 0, result.output
    assert "# Pilot Findings Summary" in result.output
    assert not (project_dir / ".agentic-best-practices/pilot/pilot-summary.md").exists()


def test_guide_freshness(standards_dir: Path) -> None:
    guide = standards_dir / "guides/api-design/api-design.md"
    stamp = guide.stat().st_mtime - 400 * 86400
    os.utime(guide, (stamp, stamp))

    result = CliRunner().invoke(cli, ["check-guide-freshness", "--standards-path", str(standards_dir)])

    assert result.exit_code == 0, result.output
    assert "guides/api-design/api-design.md (400 days)" in result.output
    assert "Total guides: 6" in result.output


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "version" in result.output
