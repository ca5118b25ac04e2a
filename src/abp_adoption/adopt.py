import filecmp
import os
from pathlib import Path
from typing import Optional, Union, cast

from .config import load_adoption_config
from .console import print_warning
from .constants import (
    ADOPTION_MODES,
    AGENTS_FILENAME,
    CLAUDE_FILENAME,
    CLAUDE_MODES,
    CONFIG_KEYS,
    DEFAULT_PINNED_DIR,
    EXISTING_MODES,
)
from .errors import PreconditionError
from .files import atomic_write_text, backup_file, expand_home, normalize_path, resolve_from_project
from .merge import check_markers_balanced, merge_standards_file, parse_standards_topics
from .pin import pin_standards_version
from .render import load_template, render_agents_md
from .stack import build_profile
from .types import AdoptionConfig, AdoptResult, PinResult


def _check_choice(name: str, value: str, choices: tuple) -> None:
    if value not in choices:
        raise PreconditionError(f"--{name} must be one of: {', '.join(choices)}")


def resolve_adoption_values(
    config_file: Optional[Union[str, Path]] = None, **overrides: Optional[str]
) -> AdoptionConfig:
    """
    Combines the optional KEY=VALUE config file with command-line values.

    Keyword arguments use option names (project_name, agent_role, ...); a value of
    None leaves the config file's value (or the built-in default) in place.
    """
    values = dict(load_adoption_config(config_file)) if config_file else {}
    known = set(CONFIG_KEYS.values())
    for key, value in overrides.items():
        if key not in known:
            raise TypeError(f"Unknown adoption value: {key}")
        if value is not None:
            values[key] = value
    return cast(AdoptionConfig, values)


def _copy_agents(agents_path: Path, claude_path: Path) -> None:
    with open(agents_path, encoding="utf-8", newline="") as f:
        atomic_write_text(claude_path, f.read())


def write_claude_file(project: Path, mode: str) -> None:
    """Creates CLAUDE.md as a symlink to AGENTS.md or a byte copy ('auto' tries the symlink first)."""
    agents_path = project / AGENTS_FILENAME
    claude_path = project / CLAUDE_FILENAME
    if mode == "copy":
        _copy_agents(agents_path, claude_path)
        return
    try:
        os.symlink(AGENTS_FILENAME, claude_path)
    except OSError:
        if mode == "symlink":
            raise
        _copy_agents(agents_path, claude_path)


def sync_claude_file(project: Path, mode: str, force: bool) -> str:
    """Creates, replaces or keeps CLAUDE.md and returns what happened."""
    if mode == "skip":
        return "skipped"

    agents_path = project / AGENTS_FILENAME
    claude_path = project / CLAUDE_FILENAME
    if not os.path.lexists(claude_path):
        write_claude_file(project, mode)
        return "created"

    if force:
        backup_file(claude_path, move=mode != "copy")
        write_claude_file(project, mode)
        return "overwritten"

    if claude_path.is_symlink() and os.readlink(claude_path) == AGENTS_FILENAME:
        return "kept-existing-symlink"
    if claude_path.is_file() and not claude_path.is_symlink():
        if filecmp.cmp(agents_path, claude_path, shallow=False):
            return "kept-existing-copy"
    print_warning(
        f"{CLAUDE_FILENAME} exists and differs from {AGENTS_FILENAME}. "
        "Use --force to overwrite or --claude-mode skip to ignore."
    )
    return "kept-existing-different"


def adopt_into_project(
    project_dir: Union[str, Path],
    standards_path: str,
    values: Optional[AdoptionConfig] = None,
    template_path: Optional[Union[str, Path]] = None,
    adoption_mode: str = "latest",
    pinned_ref: Optional[str] = None,
    pinned_dir: str = DEFAULT_PINNED_DIR,
    existing_mode: str = "fail",
    claude_mode: str = "auto",
    force: bool = False,
) -> AdoptResult:
    """
    Installs or refreshes AGENTS.md (and CLAUDE.md) in a project.

    Every precondition is checked before anything in the project is written.
    An existing AGENTS.md is refused ('fail'), backed up and re-rendered
    ('overwrite'), or has only its Standards Reference block refreshed
    ('merge'). With --force, 'fail' becomes 'overwrite'.

    Args:
        project_dir (Union[str, Path]): Target project.
        standards_path (str): Standards checkout, absolute or project-relative.
        values (Optional[AdoptionConfig]): Identity, topics, policy and command overrides.
        template_path (Optional[Union[str, Path]]): Custom template file.
        adoption_mode (str): 'latest' references the checkout; 'pinned' snapshots it.
        pinned_ref (Optional[str]): Ref to snapshot in pinned mode.
        pinned_dir (str): Project-relative snapshot directory.
        existing_mode (str): 'fail', 'overwrite' or 'merge'.
        claude_mode (str): 'auto', 'symlink', 'copy' or 'skip'.
        force (bool): Replace existing files (after backing them up).

    Returns:
        AdoptResult: The operation performed and the resulting paths.
    """
    values = values or {}
    project = Path(project_dir)
    if not project.is_dir():
        raise PreconditionError(f"Project directory does not exist: {project}")

    _check_choice("adoption-mode", adoption_mode, ADOPTION_MODES)
    _check_choice("existing-mode", existing_mode, EXISTING_MODES)
    _check_choice("claude-mode", claude_mode, CLAUDE_MODES)

    source_path = resolve_from_project(standards_path, project)
    if not source_path.is_dir():
        raise PreconditionError(f"Standards path does not exist: {source_path}")

    if force and existing_mode == "fail":
        existing_mode = "overwrite"

    agents_path = project / AGENTS_FILENAME
    agents_exists = agents_path.exists()
    if agents_exists and existing_mode == "fail":
        raise PreconditionError(
            f"{AGENTS_FILENAME} already exists. Use --existing-mode merge, "
            "--existing-mode overwrite, or --force."
        )
    if adoption_mode == "pinned" and not pinned_ref:
        raise PreconditionError("--pinned-ref is required when --adoption-mode pinned.")

    parse_standards_topics(values.get("standards_topics"))
    template = None
    if agents_exists and existing_mode == "merge":
        check_markers_balanced(agents_path.read_text(encoding="utf-8"), agents_path)
    else:
        template = load_template(template_path)

    pin: Optional[PinResult] = None
    effective_path = normalize_path(expand_home(standards_path))
    if adoption_mode == "pinned":
        pin = pin_standards_version(project, str(source_path), cast(str, pinned_ref), pinned_dir)
        effective_path = pin["relative_path"]

    backup_path: Optional[str] = None
    stack: Optional[str] = None
    if agents_exists and existing_mode == "merge":
        merged = merge_standards_file(
            project,
            effective_path,
            values.get("standards_topics"),
            values.get("deviation_policy"),
        )
        operation = "merged-standards-reference"
        backup_path = merged["backup_path"]
    else:
        profile = build_profile(project)
        stack = profile["stack"]
        rendered = render_agents_md(project, effective_path, values, template, profile)
        if agents_exists:
            backup_path = str(backup_file(agents_path))
            operation = "overwrote-existing-agents"
        else:
            operation = "rendered-template"
        atomic_write_text(agents_path, rendered)

    claude_status = sync_claude_file(project, claude_mode, force)

    return {
        "operation": operation,
        "project_dir": str(project),
        "agents_path": str(agents_path),
        "standards_path": effective_path,
        "stack": stack,
        "backup_path": backup_path,
        "claude_status": claude_status,
        "pin": pin,
    }
