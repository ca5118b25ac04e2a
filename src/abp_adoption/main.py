import sys
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Optional

import click

from . import adopt, freshness, merge, navigation, pilot, pin, validate
from .config import load_adoption_config, load_settings
from .console import (
    console,
    err_console,
    print_details,
    print_error,
    print_findings,
    print_header,
    print_list,
    print_report_summary,
    print_success,
    print_warning,
)
from .constants import ADOPTION_MODES, CLAUDE_MODES, EXISTING_MODES, STALE_GUIDE_PERCENT_ALERT
from .errors import AdoptionError, ValidationFailed
from .types import Settings

# --- VERSION SETUP ---
try:
    __version__ = version("abp-adoption")
except PackageNotFoundError:
    __version__ = "0.0.0"


# --- CLI DEFINITION ---
class AdoptionGroup(click.Group):
    """Command group that exits 1 on usage errors and on any AdoptionError."""

    def main(self, *args: Any, **kwargs: Any) -> Any:
        kwargs["standalone_mode"] = False
        try:
            rv = super().main(*args, **kwargs)
        except click.ClickException as exc:
            exc.show()
            sys.exit(1)
        except click.Abort:
            err_console.print("Aborted!")
            sys.exit(1)
        except ValidationFailed as exc:
            if exc.report:
                print_findings(exc.report)
            print_error(str(exc))
            sys.exit(1)
        except AdoptionError as exc:
            print_error(str(exc))
            sys.exit(1)
        sys.exit(rv if isinstance(rv, int) else 0)


@click.group(cls=AdoptionGroup)
@click.version_option(version=__version__)
def cli() -> None:
    """Adopt, pin and validate agentic-best-practices standards in downstream projects."""
    pass


# --- HELPERS ---

def _settings(project_dir: str, standards_path: Optional[str] = None) -> Settings:
    """Loads settings and applies the command-line standards path, which wins."""
    settings = load_settings(project_dir)
    if standards_path:
        settings["standards_path"] = standards_path
    return settings


def _exit_on_report(report: Any, strict: bool, ok_message: str) -> None:
    passed = validate.validation_passed(report, strict)
    if passed:
        print_success(ok_message)
    else:
        sys.exit(1)


project_dir_option = click.option(
    "--project-dir", required=True, type=click.Path(file_okay=False), help="Target project directory."
)
standards_path_option = click.option(
    "--standards-path",
    default=None,
    help="Standards checkout (default: $AGENTIC_BEST_PRACTICES_HOME or ~/agentic-best-practices).",
)
pinned_dir_option = click.option(
    "--pinned-dir", default=None, help="Project-relative pinned snapshots dir."
)


# --- COMMANDS ---

@cli.command(name="adopt-into-project")
@project_dir_option
@standards_path_option
@click.option("--template-path", default=None, type=click.Path(dir_okay=False), help="Template file to render.")
@click.option("--config-file", default=None, type=click.Path(dir_okay=False), help="Adoption config file (KEY=VALUE lines).")
@click.option("--project-name", default=None, help="Project name (default: basename of --project-dir).")
@click.option("--agent-role", default=None, help="Agent role text.")
@click.option("--project-description", default=None, help="Short project description.")
@click.option("--priority-one", default=None, help="First priority.")
@click.option("--priority-two", default=None, help="Second priority.")
@click.option("--priority-three", default=None, help="Third priority.")
@click.option("--adoption-mode", type=click.Choice(ADOPTION_MODES), default="latest", show_default=True)
@click.option("--pinned-ref", default=None, help="Git ref to pin when --adoption-mode pinned.")
@pinned_dir_option
@click.option("--existing-mode", type=click.Choice(EXISTING_MODES), default="fail", show_default=True)
@click.option("--claude-mode", type=click.Choice(CLAUDE_MODES), default="auto", show_default=True)
@click.option("--force", is_flag=True, help="Replace existing AGENTS.md/CLAUDE.md (previous files are backed up).")
def adopt_into_project(
    project_dir: str,
    standards_path: Optional[str],
    template_path: Optional[str],
    config_file: Optional[str],
    project_name: Optional[str],
    agent_role: Optional[str],
    project_description: Optional[str],
    priority_one: Optional[str],
    priority_two: Optional[str],
    priority_three: Optional[str],
    adoption_mode: str,
    pinned_ref: Optional[str],
    pinned_dir: Optional[str],
    existing_mode: str,
    claude_mode: str,
    force: bool,
) -> None:
    """Render AGENTS.md into a project (or refresh its standards block)."""
    settings = _settings(project_dir, standards_path)
    values = adopt.resolve_adoption_values(
        config_file,
        project_name=project_name,
        agent_role=agent_role,
        project_description=project_description,
        priority_one=priority_one,
        priority_two=priority_two,
        priority_three=priority_three,
    )
    result = adopt.adopt_into_project(
        project_dir,
        settings["standards_path"],
        values,
        template_path=template_path,
        adoption_mode=adoption_mode,
        pinned_ref=pinned_ref,
        pinned_dir=pinned_dir or settings["pinned_dir"],
        existing_mode=existing_mode,
        claude_mode=claude_mode,
        force=force,
    )

    print_success(f"Adoption bootstrap complete ({result['operation']}).")
    rows = [
        ("Project", result["project_dir"]),
        ("AGENTS.md", result["agents_path"]),
        ("CLAUDE.md", result["claude_status"]),
        ("Mode", adoption_mode),
        ("Standards path", result["standards_path"]),
    ]
    if result["stack"]:
        rows.append(("Stack", result["stack"]))
    if result["backup_path"]:
        rows.append(("Backup", result["backup_path"]))
    if result["pin"]:
        rows.append(("Pinned ref", result["pin"]["metadata"]["pinned_ref"]))
    print_details(rows)

    console.print("\nNext step:")
    next_step = f"abp validate-adoption --project-dir {project_dir}"
    if adoption_mode == "latest":
        next_step += f" --expect-standards-path {result['standards_path']}"
    console.print(f"  {next_step}", markup=False)


@cli.command(name="merge-standards-reference")
@project_dir_option
@standards_path_option
@click.option("--config-file", default=None, type=click.Path(dir_okay=False), help="Adoption config file (STANDARDS_TOPICS, DEVIATION_POLICY).")
def merge_standards_reference(
    project_dir: str, standards_path: Optional[str], config_file: Optional[str]
) -> None:
    """Insert or refresh the managed Standards Reference block in AGENTS.md."""
    settings = _settings(project_dir, standards_path)
    values = load_adoption_config(config_file) if config_file else {}
    result = merge.merge_standards_file(
        project_dir,
        settings["standards_path"],
        values.get("standards_topics"),
        values.get("deviation_policy"),
    )
    if not result["changed"]:
        console.print(f"No changes needed: {result['agents_path']}", markup=False)
        return

    print_success("Merged managed standards reference block.")
    print_details(
        [
            ("AGENTS.md", result["agents_path"]),
            ("Backup", result["backup_path"] or ""),
            ("Standards", result["standards_path"]),
        ]
    )


@cli.command(name="pin-standards-version")
@project_dir_option
@click.option("--pinned-ref", required=True, help="Git ref (tag, branch or SHA) to pin.")
@standards_path_option
@pinned_dir_option
@click.option("--print-relative-only", is_flag=True, help="Print only the project-relative snapshot path.")
def pin_standards_version(
    project_dir: str,
    pinned_ref: str,
    standards_path: Optional[str],
    pinned_dir: Optional[str],
    print_relative_only: bool,
) -> None:
    """Snapshot the standards repository at a git ref into the project."""
    settings = _settings(project_dir, standards_path)
    result = pin.pin_standards_version(
        project_dir, settings["standards_path"], pinned_ref, pinned_dir or settings["pinned_dir"]
    )
    if print_relative_only:
        click.echo(result["relative_path"])
        return

    if result["status"] == "unchanged":
        print_success("Pinned snapshot already up to date.")
    else:
        print_success("Pinned standards snapshot created.")
    print_details(
        [
            ("Ref", result["metadata"]["pinned_ref"]),
            ("SHA", result["metadata"]["resolved_sha"]),
            ("Path", result["relative_path"]),
        ]
    )


@cli.command(name="validate-adoption")
@click.option("--project-dir", default=".", show_default=True, type=click.Path(file_okay=False), help="Project to validate.")
@click.option("--expect-standards-path", default=None, help="Fail unless AGENTS.md references this standards path.")
@click.option("--strict", is_flag=True, help="Treat warnings as failures.")
def validate_adoption(project_dir: str, expect_standards_path: Optional[str], strict: bool) -> None:
    """Check AGENTS.md/CLAUDE.md structure and the referenced standards."""
    settings = load_settings(project_dir)
    report = validate.validate_adoption(project_dir, expect_standards_path, settings["pinned_dir"])

    print_findings(report)
    console.print("")
    print_report_summary(
        f"Adoption validation: {report['target']}",
        report,
        validate.validation_passed(report, strict),
    )
    _exit_on_report(report, strict, "Validation passed.")


@cli.command(name="prepare-pilot-project")
@project_dir_option
@standards_path_option
@click.option("--adoption-mode", type=click.Choice(ADOPTION_MODES), default="latest", show_default=True)
@click.option("--pinned-ref", default=None, help="Git ref to pin when --adoption-mode pinned.")
@pinned_dir_option
@click.option("--existing-mode", type=click.Choice(EXISTING_MODES), default="merge", show_default=True)
@click.option("--claude-mode", type=click.Choice(CLAUDE_MODES), default="auto", show_default=True)
@click.option("--force", is_flag=True, help="Pass --force to adoption.")
@click.option("--pilot-dir", default=None, help="Project-relative pilot artifact directory.")
@click.option("--project-name", default=None, help="Project name (default: basename of --project-dir).")
@click.option("--pilot-owner", default="TBD", show_default=True, help="Pilot owner name.")
@click.option("--start-date", default=None, help="Pilot start date, YYYY-MM-DD (default: today).")
@click.option("--overwrite", is_flag=True, help="Overwrite existing pilot artifact files.")
def prepare_pilot_project(
    project_dir: str,
    standards_path: Optional[str],
    adoption_mode: str,
    pinned_ref: Optional[str],
    pinned_dir: Optional[str],
    existing_mode: str,
    claude_mode: str,
    force: bool,
    pilot_dir: Optional[str],
    project_name: Optional[str],
    pilot_owner: str,
    start_date: Optional[str],
    overwrite: bool,
) -> None:
    """Adopt, validate strictly, and write pilot tracking artifacts."""
    settings = _settings(project_dir, standards_path)
    result = pilot.prepare_pilot_project(
        project_dir,
        settings["standards_path"],
        pilot_dir=pilot_dir or settings["pilot_dir"],
        project_name=project_name,
        pilot_owner=pilot_owner,
        start_date=start_date,
        overwrite=overwrite,
        adoption_mode=adoption_mode,
        pinned_ref=pinned_ref,
        pinned_dir=pinned_dir or settings["pinned_dir"],
        existing_mode=existing_mode,
        claude_mode=claude_mode,
        force=force,
    )

    for skipped in result["skipped"]:
        print_warning(f"Skipping existing pilot artifact: {skipped}")
    print_success("Pilot preparation complete.")
    print_details(
        [
            ("Project", result["adoption"]["project_dir"]),
            ("Adoption mode", adoption_mode),
            ("Standards path", result["adoption"]["standards_path"]),
            ("Pilot artifacts", result["pilot_dir"]),
        ]
    )
    console.print("\nNext: fill kickoff.md and start weekly check-ins.")


@cli.command(name="check-pilot-readiness")
@click.option("--project-dir", default=".", show_default=True, type=click.Path(file_okay=False), help="Pilot project.")
@click.option("--pilot-dir", default=None, help="Project-relative pilot artifact directory.")
@click.option("--min-weekly-checkins", type=click.IntRange(min=0), default=1, show_default=True)
@click.option("--require-retrospective", is_flag=True, help="Require a completed retrospective file.")
@click.option("--strict", is_flag=True, help="Treat warnings as failures.")
def check_pilot_readiness(
    project_dir: str,
    pilot_dir: Optional[str],
    min_weekly_checkins: int,
    require_retrospective: bool,
    strict: bool,
) -> None:
    """Check pilot artifacts, weekly cadence and adoption health."""
    settings = load_settings(project_dir)
    report = pilot.check_pilot_readiness(
        project_dir,
        pilot_dir=pilot_dir or settings["pilot_dir"],
        min_weekly_checkins=min_weekly_checkins,
        require_retrospective=require_retrospective,
        strict=strict,
        pinned_dir=settings["pinned_dir"],
    )

    print_findings(report)
    console.print("")
    print_details(
        [
            ("Pilot directory", report["target"]),
            ("Weekly check-ins", str(report["weekly_checkins"])),
            ("Retrospectives found", str(report["retrospectives"])),
        ]
    )
    print_report_summary("Pilot readiness", report, validate.validation_passed(report, strict))
    _exit_on_report(report, strict, "Pilot readiness check passed.")


@cli.command(name="summarize-pilot-findings")
@click.option("--project-dir", default=".", show_default=True, type=click.Path(file_okay=False), help="Pilot project.")
@click.option("--pilot-dir", default=None, help="Project-relative pilot artifact directory.")
@click.option("--output", default=None, help="Output markdown file (default: <pilot-dir>/pilot-summary.md).")
@click.option("--min-weekly-checkins", type=click.IntRange(min=0), default=1, show_default=True)
@click.option("--require-retrospective", is_flag=True, help="Require a completed retrospective file.")
@click.option("--print-only", is_flag=True, help="Print the summary instead of writing it.")
@click.option("--strict", is_flag=True, help="Treat warnings as failures.")
def summarize_pilot_findings(
    project_dir: str,
    pilot_dir: Optional[str],
    output: Optional[str],
    min_weekly_checkins: int,
    require_retrospective: bool,
    print_only: bool,
    strict: bool,
) -> None:
    """Roll weekly check-ins and the latest retrospective into one summary."""
    settings = load_settings(project_dir)
    text, summary = pilot.summarize_pilot_findings(
        project_dir,
        pilot_dir=pilot_dir or settings["pilot_dir"],
        output=output,
        min_weekly_checkins=min_weekly_checkins,
        require_retrospective=require_retrospective,
        write=not print_only,
    )
    report = summary["readiness"]

    if print_only:
        click.echo(text, nl=False)
    else:
        print_success(f"Pilot summary written to: {summary['output_path']}")
    print_findings(report)
    print_report_summary("Pilot summary checks", report, validate.validation_passed(report, strict))
    _exit_on_report(report, strict, "Pilot findings summary complete.")


@cli.command(name="check-guide-freshness")
@standards_path_option
@click.option("--threshold-days", type=click.IntRange(min=0), default=180, show_default=True)
def check_guide_freshness(standards_path: Optional[str], threshold_days: int) -> None:
    """Report guides not modified within the threshold."""
    settings = _settings(".", standards_path)
    report = freshness.check_guide_freshness(settings["standards_path"], threshold_days)

    print_header(
        f"Checking guide freshness (threshold: {threshold_days} days)", report["standards_path"]
    )
    print_list(
        "Stale guides:", [f"{g['path']} ({g['age_days']} days)" for g in report["stale"]]
    )
    print_details(
        [
            ("Total guides", str(report["total"])),
            (f"Stale guides (>{threshold_days} days)", str(len(report["stale"]))),
            ("Stale percentage", f"{int(report['stale_percent'])}%"),
        ]
    )
    if report["stale_percent"] > STALE_GUIDE_PERCENT_ALERT:
        print_warning(
            f"More than {STALE_GUIDE_PERCENT_ALERT}% of guides are stale; "
            "consider increasing maintenance frequency."
        )


@cli.command(name="validate-navigation")
@standards_path_option
@click.option("--strict", is_flag=True, help="Treat warnings as failures.")
def validate_navigation(standards_path: Optional[str], strict: bool) -> None:
    """Check the standards checkout's guide index, links and anchors."""
    settings = _settings(".", standards_path)
    report = navigation.validate_navigation(settings["standards_path"])

    print_findings(report)
    console.print("")
    print_report_summary(
        f"Navigation validation: {report['target']}",
        report,
        validate.validation_passed(report, strict),
    )
    _exit_on_report(report, strict, "Navigation checks passed.")


if __name__ == "__main__":
    cli()
