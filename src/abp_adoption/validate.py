import filecmp
import functools
import os
import re
from pathlib import Path
from typing import Any, List, Optional, Union

import tiktoken

from .constants import (
    AGENTS_FILENAME,
    AGENTS_TOKEN_BUDGET,
    CLAUDE_FILENAME,
    DEFAULT_PINNED_DIR,
    DEVIATION_POLICY_LEAD,
    MANAGED_BEGIN,
    MANAGED_END,
    MIN_GUIDE_REFERENCES,
    PIN_METADATA_FILENAME,
    RECOMMENDED_HEADINGS,
    SETUP_INSTRUCTIONS_MARKER,
    TEMPLATE_PLACEHOLDERS,
    TODO_COMMAND_PREFIX,
    TOKEN_ENCODING,
)
from .files import normalize_path, resolve_from_project
from .pin import read_pin_metadata
from .types import ValidationReport

PLACEHOLDER_RE = re.compile("|".join(re.escape(p) for p in TEMPLATE_PLACEHOLDERS))
TOKEN_RE = re.compile(r"\{\{[A-Z_]+\}\}")
STANDARDS_HEADING_RE = re.compile(r"^##\s+Standards Reference\s*$", re.MULTILINE)
STANDARDS_PATH_RE = re.compile(
    r"^This project follows organizational standards defined in `([^`]*?)/?`\.", re.MULTILINE
)
GUIDE_REF_RE = re.compile(r"`([^`]+guides/[^`]+\.md)`")
VERSION_REF_RE = re.compile(r"^v?[0-9]+\.[0-9]+\.[0-9]+([-.][A-Za-z0-9]+)?$")
SHA_REF_RE = re.compile(r"^[0-9a-f]{7,40}$")


# --- REPORT HELPERS ---

def new_report(target: str) -> ValidationReport:
    return {"target": target, "findings": [], "errors": 0, "warnings": 0}


def add_error(report: ValidationReport, message: str, detail: Optional[str] = None) -> None:
    report["findings"].append({"severity": "error", "message": message, "detail": detail})
    report["errors"] += 1


def add_warning(report: ValidationReport, message: str, detail: Optional[str] = None) -> None:
    report["findings"].append({"severity": "warning", "message": message, "detail": detail})
    report["warnings"] += 1


def validation_passed(report: ValidationReport, strict: bool = False) -> bool:
    """False on any error, or on any warning when strict."""
    if report["errors"]:
        return False
    return not (strict and report["warnings"])


# --- TOKEN BUDGET ---

@functools.lru_cache(maxsize=1)
def _encoding() -> Any:
    try:
        return tiktoken.get_encoding(TOKEN_ENCODING)
    except Exception:
        # Encoding files are fetched on first use; offline hosts skip the budget check.
        return None


def count_tokens(text: str) -> Optional[int]:
    """Counts cl100k_base tokens, or returns None when the encoding is unavailable."""
    encoding = _encoding()
    if encoding is None:
        return None
    return len(encoding.encode(text))


# --- RULES ---

def is_pinned_path(path: str, pinned_dir: str = DEFAULT_PINNED_DIR) -> bool:
    """True when a standards path points into a pinned snapshot directory."""
    prefixes = {normalize_path(DEFAULT_PINNED_DIR), normalize_path(pinned_dir)}
    for prefix in prefixes:
        if f"/{prefix}/" in path:
            return True
        if path.startswith(f"{prefix}/") or path.startswith(f"./{prefix}/"):
            return True
    return False


def looks_like_release_ref(ref: str) -> bool:
    return bool(VERSION_REF_RE.match(ref) or SHA_REF_RE.match(ref))


def _check_structure(report: ValidationReport, text: str) -> None:
    if SETUP_INSTRUCTIONS_MARKER in text:
        add_error(report, f"Template setup instructions are still present in {AGENTS_FILENAME}")

    leftovers = sorted(set(PLACEHOLDER_RE.findall(text)))
    if leftovers:
        add_error(
            report,
            f"Unresolved template placeholders found in {AGENTS_FILENAME}",
            ", ".join(leftovers),
        )
    tokens = sorted(set(TOKEN_RE.findall(text)))
    if tokens:
        add_error(report, f"Unresolved token placeholders found in {AGENTS_FILENAME}", ", ".join(tokens))

    heading_count = len(STANDARDS_HEADING_RE.findall(text))
    if heading_count == 0:
        add_error(report, "Missing required section: ## Standards Reference")
    elif heading_count > 1:
        add_warning(report, f"Multiple Standards Reference sections detected ({heading_count})")

    if DEVIATION_POLICY_LEAD not in text:
        add_error(report, f"Deviation policy statement is missing from {AGENTS_FILENAME}")

    if text.count(MANAGED_BEGIN) != text.count(MANAGED_END):
        add_error(report, "Managed standards markers are unbalanced")

    lines = text.splitlines()
    for heading in RECOMMENDED_HEADINGS:
        if not any(line.startswith(heading) for line in lines):
            add_warning(report, f"Missing recommended section: {heading}")

    if TODO_COMMAND_PREFIX in text:
        add_warning(report, "Key Commands still contain TODO placeholders")


def _check_standards_path(
    report: ValidationReport,
    text: str,
    project: Path,
    expect_standards_path: Optional[str],
    pinned_dir: str,
) -> None:
    match = STANDARDS_PATH_RE.search(text)
    if not match or not match.group(1):
        add_error(report, f"Could not parse standards path from {AGENTS_FILENAME} Standards Reference")
        return

    standards_path = match.group(1)
    resolved = resolve_from_project(standards_path, project)
    if not resolved.is_dir():
        add_error(report, f"Standards path does not exist: {resolved}")
    if not (resolved / "README.md").is_file():
        add_warning(report, f"Standards path does not contain README.md: {resolved}")

    if is_pinned_path(standards_path, pinned_dir):
        metadata_path = resolved / PIN_METADATA_FILENAME
        if not metadata_path.is_file():
            add_error(report, f"Pinned standards path is missing {PIN_METADATA_FILENAME} metadata: {resolved}")
        else:
            metadata = read_pin_metadata(resolved)
            pinned_ref = metadata.get("pinned_ref") if metadata else None
            if not pinned_ref or not isinstance(pinned_ref, str):
                add_warning(report, f"Pinned metadata exists but pinned_ref could not be parsed: {metadata_path}")
            elif not looks_like_release_ref(pinned_ref):
                add_warning(
                    report,
                    f"Pinned metadata uses non-version/non-sha ref ('{pinned_ref}'); "
                    "prefer tags or commit SHA for reproducibility",
                )

    if expect_standards_path:
        expected = resolve_from_project(normalize_path(expect_standards_path), project)
        if expected != resolved:
            add_error(
                report,
                f"Standards path mismatch. Expected '{expected}' but {AGENTS_FILENAME} uses '{resolved}'",
            )


def _check_guide_references(report: ValidationReport, text: str, project: Path) -> None:
    refs: List[str] = sorted(set(GUIDE_REF_RE.findall(text)))
    if not refs:
        add_error(report, f"No guide references found in {AGENTS_FILENAME}")
        return
    if len(refs) < MIN_GUIDE_REFERENCES:
        add_warning(
            report,
            f"Only {len(refs)} guide references found; expected at least "
            f"{MIN_GUIDE_REFERENCES} references for effective guidance",
        )
    for ref in refs:
        resolved = resolve_from_project(ref, project)
        if not resolved.is_file():
            add_error(report, f"Guide reference does not exist: {resolved}")


def _check_claude(report: ValidationReport, project: Path) -> None:
    agents_path = project / AGENTS_FILENAME
    claude_path = project / CLAUDE_FILENAME
    if claude_path.is_symlink():
        target = os.readlink(claude_path)
        if target != AGENTS_FILENAME:
            add_warning(report, f"{CLAUDE_FILENAME} symlink target is '{target}' (expected {AGENTS_FILENAME})")
    elif claude_path.is_file():
        if not agents_path.is_file() or not filecmp.cmp(agents_path, claude_path, shallow=False):
            add_warning(report, f"{CLAUDE_FILENAME} exists but differs from {AGENTS_FILENAME}")
    elif not claude_path.exists():
        add_warning(report, f"{CLAUDE_FILENAME} not found (recommended for Claude compatibility)")


def validate_adoption(
    project_dir: Union[str, Path],
    expect_standards_path: Optional[str] = None,
    pinned_dir: str = DEFAULT_PINNED_DIR,
) -> ValidationReport:
    """
    Checks an adopted project's AGENTS.md and CLAUDE.md. Read-only.

    Args:
        project_dir (Union[str, Path]): Project to inspect.
        expect_standards_path (Optional[str]): Standards path the file must reference.
        pinned_dir (str): Project-relative pinned snapshots directory.

    Returns:
        ValidationReport: Every error and warning found.
    """
    project = Path(os.path.abspath(project_dir))
    report = new_report(str(project_dir))
    agents_path = project / AGENTS_FILENAME

    if not agents_path.is_file():
        add_error(report, f"{AGENTS_FILENAME} not found at {agents_path}")
    else:
        text = agents_path.read_text(encoding="utf-8")
        _check_structure(report, text)
        _check_standards_path(report, text, project, expect_standards_path, pinned_dir)
        _check_guide_references(report, text, project)

        tokens = count_tokens(text)
        if tokens is not None and tokens > AGENTS_TOKEN_BUDGET:
            add_warning(
                report,
                f"{AGENTS_FILENAME} is {tokens:,} tokens; keep it under {AGENTS_TOKEN_BUDGET:,} "
                "so task context is not crowded out",
            )

    _check_claude(report, project)
    return report
