import re
from pathlib import Path
from typing import Dict, List, Union

from .constants import AGENTS_FILENAME, MAX_ANCHORS_PER_GUIDE, MAX_CONTENTS_ENTRIES, NAVIGATION_DIRS
from .errors import PreconditionError
from .files import expand_home
from .types import ValidationReport
from .validate import add_error, add_warning, new_report

README_FILENAME = "README.md"
MD_LINK_RE = re.compile(r"\[[^\]]+\]\(([^)]+\.md)\)")
CONTENTS_ROW_RE = re.compile(r"^\| \[.*\]\(#")
CONTENTS_ENTRY_RE = re.compile(r"\[[^\]]+\]\(#[^)]+\)")
HEADING_RE = re.compile(r"^##+\s+(.*)$")
ANCHOR_LINK_RE = re.compile(r"\(#([a-z0-9-]+)\)")


def list_guides(root: Path) -> List[str]:
    """Returns root-relative paths of every markdown file under the navigation dirs."""
    guides: List[str] = []
    for name in NAVIGATION_DIRS:
        base = root / name
        if base.is_dir():
            guides.extend(p.relative_to(root).as_posix() for p in base.rglob("*.md") if p.is_file())
    return sorted(guides)


def outside_code_fences(text: str) -> List[str]:
    lines: List[str] = []
    in_code = False
    for line in text.splitlines():
        if line.startswith("```"):
            in_code = not in_code
            continue
        if not in_code:
            lines.append(line)
    return lines


def slugify(heading: str) -> str:
    """GitHub-style heading anchor, without the duplicate suffix."""
    slug = re.sub(r"[^a-z0-9 -]", "", heading.lower()).replace(" ", "-")
    return slug.strip("-")


def heading_anchors(text: str) -> List[str]:
    """
    Lists every anchor a document's headings (level 2 and deeper) produce.

    Repeated headings get -1, -2, ... suffixes in order, as GitHub renders them.
    """
    counts: Dict[str, int] = {}
    anchors: List[str] = []
    for line in text.splitlines():
        match = HEADING_RE.match(line)
        if not match:
            continue
        slug = slugify(match.group(1))
        if not slug:
            continue
        counts[slug] = counts.get(slug, 0) + 1
        anchors.append(slug if counts[slug] == 1 else f"{slug}-{counts[slug] - 1}")
    return anchors


def _read(path: Path) -> str:
    return path.read_text(encoding="utf-8") if path.is_file() else ""


def _check_index(report: ValidationReport, guides: List[str], index: str, text: str, message: str) -> None:
    for guide in guides:
        if f"({guide})" not in text:
            add_error(report, message.format(guide=guide, index=index))


def _check_links(report: ValidationReport, root: Path, index: str, text: str) -> None:
    for target in MD_LINK_RE.findall(text):
        if re.match(r"https?://", target):
            continue
        if not (root / target).is_file():
            add_error(report, f"{index} links to non-existent file: {target}")


def _check_contents(report: ValidationReport, guide: str, text: str) -> None:
    lines = text.splitlines()
    if not any(line.startswith("## Contents") for line in lines):
        add_warning(report, f"{guide} has no Contents table")
        return

    sections = [line for line in lines if line.startswith("## ") and not line.startswith("## Contents")]
    entries: List[str] = []
    for line in outside_code_fences(text):
        if CONTENTS_ROW_RE.match(line):
            entries.extend(CONTENTS_ENTRY_RE.findall(line))
    entries = entries[:MAX_CONTENTS_ENTRIES]

    # Contents tables list key sections only, so only a longer table is stale.
    if len(entries) > len(sections):
        add_warning(
            report,
            f"{guide} Contents may have stale entries "
            f"(H2s: {len(sections)}, Contents: {len(entries)})",
        )


def _check_anchors(report: ValidationReport, guide: str, text: str) -> None:
    valid = set(heading_anchors(text))
    used: List[str] = []
    for line in outside_code_fences(text):
        used.extend(ANCHOR_LINK_RE.findall(line))
    for anchor in used[:MAX_ANCHORS_PER_GUIDE]:
        if anchor not in valid:
            add_warning(report, f"{guide} may have broken anchor: #{anchor}")


def validate_navigation(standards_path: Union[str, Path]) -> ValidationReport:
    """
    Checks a standards checkout for navigation drift.

    Every guide under guides/ and adoption/ must be linked from both the
    AGENTS.md guide index and README.md, links in those two files must
    resolve, and each guide's Contents table and in-page anchors must match
    its headings.

    Args:
        standards_path (Union[str, Path]): Root of the standards checkout.

    Returns:
        ValidationReport: Errors for index and link drift, warnings for guide structure.
    """
    root = Path(expand_home(str(standards_path)))
    if not root.is_dir():
        raise PreconditionError(f"Standards path not found: {root}")

    report = new_report(str(root))
    guides = list_guides(root)
    agents_text = _read(root / AGENTS_FILENAME)
    readme_text = _read(root / README_FILENAME)

    _check_index(report, guides, AGENTS_FILENAME, agents_text, "Guide '{guide}' not in {index} Guide Index")
    _check_index(report, guides, README_FILENAME, readme_text, "Guide '{guide}' not linked in {index}")
    _check_links(report, root, AGENTS_FILENAME, agents_text)
    _check_links(report, root, README_FILENAME, readme_text)

    for guide in guides:
        text = (root / guide).read_text(encoding="utf-8")
        _check_contents(report, guide, text)
        _check_anchors(report, guide, text)
    return report
