import os
import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .adopt import adopt_into_project
from .constants import (
    AGENTS_FILENAME,
    CLAUDE_FILENAME,
    DEFAULT_PILOT_DIR,
    DEFAULT_PINNED_DIR,
    PILOT_KICKOFF,
    PILOT_KICKOFF_TEMPLATE,
    PILOT_README,
    PILOT_README_TEMPLATE,
    PILOT_RETRO_TEMPLATE,
    PILOT_RETRO_TEMPLATE_TEXT,
    PILOT_SUMMARY,
    PILOT_WEEKLY_TEMPLATE,
    PILOT_WEEKLY_TEMPLATE_TEXT,
)
from .errors import PreconditionError, ValidationFailed
from .files import atomic_write_text, resolve_from_project
from .render import substitute
from .types import AdoptionConfig, PilotPrepareResult, PilotReadinessReport, PilotSummary
from .validate import STANDARDS_PATH_RE, add_error, add_warning, validate_adoption, validation_passed

PILOT_TEMPLATES = (
    (PILOT_KICKOFF, PILOT_KICKOFF_TEMPLATE),
    (PILOT_WEEKLY_TEMPLATE, PILOT_WEEKLY_TEMPLATE_TEXT),
    (PILOT_RETRO_TEMPLATE, PILOT_RETRO_TEMPLATE_TEXT),
)
REQUIRED_PILOT_FILES = (PILOT_KICKOFF, PILOT_WEEKLY_TEMPLATE, PILOT_RETRO_TEMPLATE, PILOT_README)


def _parse_start_date(value: Optional[str]) -> str:
    if not value:
        return date.today().isoformat()
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise PreconditionError("--start-date must be in YYYY-MM-DD format.") from exc
    return value


def list_weekly_checkins(pilot_dir: Path) -> List[Path]:
    return sorted(
        p for p in pilot_dir.glob("weekly-*.md") if p.is_file() and p.name != PILOT_WEEKLY_TEMPLATE
    )


def list_retrospectives(pilot_dir: Path) -> List[Path]:
    return sorted(
        p for p in pilot_dir.glob("retrospective*.md") if p.is_file() and p.name != PILOT_RETRO_TEMPLATE
    )


def prepare_pilot_project(
    project_dir: Union[str, Path],
    standards_path: str,
    pilot_dir: str = DEFAULT_PILOT_DIR,
    project_name: Optional[str] = None,
    pilot_owner: str = "TBD",
    start_date: Optional[str] = None,
    overwrite: bool = False,
    adoption_mode: str = "latest",
    pinned_ref: Optional[str] = None,
    pinned_dir: str = DEFAULT_PINNED_DIR,
    existing_mode: str = "merge",
    claude_mode: str = "auto",
    force: bool = False,
) -> PilotPrepareResult:
    """
    Adopts the standards into a project, validates strictly, then writes pilot artifacts.

    Raises:
        ValidationFailed: When the adopted project does not pass strict validation;
            no pilot files are written in that case.
    """
    project = Path(project_dir)
    if not project.is_dir():
        raise PreconditionError(f"Project directory not found: {project}")
    start = _parse_start_date(start_date)
    name = project_name or project.resolve().name

    values: AdoptionConfig = {"project_name": name}
    adoption = adopt_into_project(
        project,
        standards_path,
        values,
        adoption_mode=adoption_mode,
        pinned_ref=pinned_ref,
        pinned_dir=pinned_dir,
        existing_mode=existing_mode,
        claude_mode=claude_mode,
        force=force,
    )

    expected = standards_path if adoption_mode == "latest" else None
    report = validate_adoption(project, expect_standards_path=expected, pinned_dir=pinned_dir)
    if not validation_passed(report, strict=True):
        raise ValidationFailed(
            "Adoption validation failed; fix reported issues before preparing the pilot.", report
        )

    text = (project / AGENTS_FILENAME).read_text(encoding="utf-8")
    match = STANDARDS_PATH_RE.search(text)
    effective_path = match.group(1) if match and match.group(1) else adoption["standards_path"]

    pilot_root = resolve_from_project(pilot_dir, project)
    pilot_root.mkdir(parents=True, exist_ok=True)
    tokens = {
        "PROJECT_NAME": name,
        "PROJECT_DIR": str(project.resolve()),
        "PILOT_OWNER": pilot_owner,
        "START_DATE": start,
        "ADOPTION_MODE": adoption_mode,
        "STANDARDS_PATH": effective_path,
    }

    written: List[str] = []
    skipped: List[str] = []
    for filename, template in PILOT_TEMPLATES:
        target = pilot_root / filename
        if target.exists() and not overwrite:
            skipped.append(str(target))
            continue
        atomic_write_text(target, substitute(template, tokens))
        written.append(str(target))

    readme = pilot_root / PILOT_README
    if readme.exists() and not overwrite:
        skipped.append(str(readme))
    else:
        atomic_write_text(
            readme,
            PILOT_README_TEMPLATE.format(
                start_date=start,
                project_name=name,
                project_dir=tokens["PROJECT_DIR"],
                adoption_mode=adoption_mode,
                standards_path=effective_path,
                pilot_owner=pilot_owner,
            ),
        )
        written.append(str(readme))

    return {
        "pilot_dir": str(pilot_root),
        "written": written,
        "skipped": skipped,
        "adoption": adoption,
    }


def check_pilot_readiness(
    project_dir: Union[str, Path],
    pilot_dir: str = DEFAULT_PILOT_DIR,
    min_weekly_checkins: int = 1,
    require_retrospective: bool = False,
    strict: bool = False,
    pinned_dir: str = DEFAULT_PINNED_DIR,
) -> PilotReadinessReport:
    """
    Checks that a pilot is set up and progressing.

    Args:
        project_dir (Union[str, Path]): The pilot project.
        pilot_dir (str): Project-relative pilot artifact directory.
        min_weekly_checkins (int): Weekly check-in files expected so far.
        require_retrospective (bool): Require a completed retrospective file.
        strict (bool): Validate adoption strictly and treat a weekly shortfall as an error.
        pinned_dir (str): Project-relative pinned snapshots directory.

    Returns:
        PilotReadinessReport: Findings plus the weekly and retrospective counts.
    """
    project = Path(project_dir)
    if not project.is_dir():
        raise PreconditionError(f"Project directory not found: {project}")
    if min_weekly_checkins < 0:
        raise PreconditionError("--min-weekly-checkins must be a non-negative integer.")

    pilot_root = resolve_from_project(pilot_dir, project)
    report: PilotReadinessReport = {
        "target": str(pilot_root),
        "findings": [],
        "errors": 0,
        "warnings": 0,
        "weekly_checkins": 0,
        "retrospectives": 0,
    }

    agents_path = project / AGENTS_FILENAME
    claude_path = project / CLAUDE_FILENAME
    if not agents_path.is_file():
        add_error(report, f"{AGENTS_FILENAME} missing at {agents_path}")
    if not os.path.lexists(claude_path):
        add_warning(report, f"{CLAUDE_FILENAME} missing at {claude_path}")

    adoption = validate_adoption(project, pinned_dir=pinned_dir)
    if not validation_passed(adoption, strict=strict):
        failures = [f["message"] for f in adoption["findings"]]
        add_error(
            report,
            "Adoption validation failed. Run validate-adoption and fix reported issues.",
            "; ".join(failures) or None,
        )

    if not pilot_root.is_dir():
        add_error(report, f"Pilot directory missing at {pilot_root}")
        return report

    for filename in REQUIRED_PILOT_FILES:
        if not (pilot_root / filename).is_file():
            add_error(report, f"Missing pilot artifact file: {pilot_root / filename}")

    kickoff = pilot_root / PILOT_KICKOFF
    if kickoff.is_file() and "{{" in kickoff.read_text(encoding="utf-8"):
        add_error(report, f"{PILOT_KICKOFF} still contains unresolved template tokens")

    report["weekly_checkins"] = len(list_weekly_checkins(pilot_root))
    if report["weekly_checkins"] < min_weekly_checkins:
        message = (
            f"Weekly check-ins below target. Required: {min_weekly_checkins}, "
            f"found: {report['weekly_checkins']}"
        )
        if strict:
            add_error(report, message)
        else:
            add_warning(report, message)

    report["retrospectives"] = len(list_retrospectives(pilot_root))
    if require_retrospective and not report["retrospectives"]:
        add_error(
            report,
            "Completed retrospective file not found (expected retrospective*.md excluding template)",
        )
    return report


def extract_table_value(text: str, key: str) -> str:
    """Returns the value cell of the first '| key | value |' row, or ''."""
    match = re.search(rf"^\| {re.escape(key)} \| (.*) \|$", text, re.MULTILINE)
    return match.group(1) if match else ""


def escape_table_value(value: str) -> str:
    value = value.replace("|", "\\|").replace("\r", "")
    return value if value.strip() else "N/A"


def _table_value(path: Path, key: str) -> str:
    return escape_table_value(extract_table_value(path.read_text(encoding="utf-8"), key))


def build_pilot_summary(
    project: Path, pilot_root: Path, weekly: List[Path], retrospectives: List[Path]
) -> str:
    generated_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    lines = [
        "# Pilot Findings Summary",
        "",
        f"Generated by `abp summarize-pilot-findings` on {generated_at}.",
        "",
        "| Field | Value |",
        "| --- | --- |",
        f"| Project | {project.name} |",
        f"| Project Directory | {project} |",
        f"| Pilot Directory | {pilot_root} |",
        f"| Weekly Check-ins Found | {len(weekly)} |",
        f"| Retrospectives Found | {len(retrospectives)} |",
        "",
        "## Weekly Snapshot",
        "",
        "| Weekly File | Reporting Period | Blockers Encountered | Critical Defects |",
        "| --- | --- | --- | --- |",
    ]
    for path in weekly:
        lines.append(
            f"| `{path.name}` | {_table_value(path, 'Reporting Period')} "
            f"| {_table_value(path, 'Blockers encountered')} "
            f"| {_table_value(path, 'Critical defects linked to guidance')} |"
        )
    if not weekly:
        lines.append("| N/A | N/A | N/A | N/A |")

    lines += ["", "## Retrospective Snapshot", "", "| Field | Value |", "| --- | --- |"]
    if retrospectives:
        latest = retrospectives[-1]
        lines += [
            f"| Latest retrospective | `{latest.name}` |",
            f"| Rollout decision | {_table_value(latest, 'Continue rollout / pause / iterate')} |",
            f"| Preferred adoption mode | {_table_value(latest, 'Preferred adoption mode (latest or pinned)')} |",
            f"| Follow-up owners/deadlines | {_table_value(latest, 'Follow-up owners and deadlines')} |",
        ]
    else:
        lines += [
            "| Latest retrospective | N/A |",
            "| Rollout decision | N/A |",
            "| Preferred adoption mode | N/A |",
            "| Follow-up owners/deadlines | N/A |",
        ]

    lines += [
        "",
        "## Backlog Intake Checklist",
        "",
        "| Item | Owner | Status |",
        "| --- | --- | --- |",
        "| Review weekly blockers and defects from all weekly files | Maintainer + pilot owner | Pending |",
        "| Convert confirmed gaps into feedback issues using `docs/templates/feedback-template.md` "
        "| Maintainer + contributors | Pending |",
        "| Map accepted issues into next release backlog and roadmap milestones | Maintainer | Pending |",
    ]
    return "\n".join(lines) + "\n"


def summarize_pilot_findings(
    project_dir: Union[str, Path],
    pilot_dir: str = DEFAULT_PILOT_DIR,
    output: Optional[str] = None,
    min_weekly_checkins: int = 1,
    require_retrospective: bool = False,
    write: bool = True,
) -> Tuple[str, PilotSummary]:
    """
    Collects weekly check-ins and the latest retrospective into pilot-summary.md.

    Returns:
        Tuple[str, PilotSummary]: The summary markdown and what was found.
    """
    project = Path(project_dir)
    if not project.is_dir():
        raise PreconditionError(f"Project directory not found: {project}")
    if min_weekly_checkins < 0:
        raise PreconditionError("--min-weekly-checkins must be a non-negative integer.")

    project_abs = project.resolve()
    pilot_root = resolve_from_project(pilot_dir, project_abs)
    output_path = (
        resolve_from_project(output, project_abs) if output else pilot_root / PILOT_SUMMARY
    )
    readiness: PilotReadinessReport = {
        "target": str(pilot_root),
        "findings": [],
        "errors": 0,
        "warnings": 0,
        "weekly_checkins": 0,
        "retrospectives": 0,
    }

    weekly: List[Path] = []
    retrospectives: List[Path] = []
    if not pilot_root.is_dir():
        add_error(readiness, f"Pilot directory not found: {pilot_root}")
    else:
        weekly = list_weekly_checkins(pilot_root)
        retrospectives = list_retrospectives(pilot_root)
        if len(weekly) < min_weekly_checkins:
            add_warning(
                readiness,
                f"Weekly check-ins below target. Required: {min_weekly_checkins}, found: {len(weekly)}",
            )
        if not retrospectives:
            if require_retrospective:
                add_error(
                    readiness,
                    "No completed retrospective found (expected retrospective*.md excluding template).",
                )
            else:
                add_warning(readiness, "No completed retrospective found yet.")
    readiness["weekly_checkins"] = len(weekly)
    readiness["retrospectives"] = len(retrospectives)

    text = build_pilot_summary(project_abs, pilot_root, weekly, retrospectives)
    if write:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(output_path, text)

    return text, {
        "output_path": str(output_path),
        "weekly_checkins": len(weekly),
        "retrospectives": len(retrospectives),
        "readiness": readiness,
    }
