import os
import re
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .constants import (
    AGENTS_FILENAME,
    DEFAULT_DEVIATION_POLICY,
    DEFAULT_STANDARDS_TOPICS,
    MANAGED_BEGIN,
    MANAGED_END,
    STANDARDS_BLOCK_TEMPLATE,
)
from .errors import AdoptionError, ConfigError, PreconditionError
from .files import atomic_write_text, backup_file, expand_home, normalize_path, resolve_from_project
from .types import MergeResult

HEADING_RE = re.compile(r"^##\s+")
LEGACY_HEADING_RE = re.compile(r"^##\s+Standards Reference\s*$")


def parse_standards_topics(raw: Optional[str]) -> List[Tuple[str, str]]:
    """
    Parses a STANDARDS_TOPICS value ("Topic|path;Topic|path").

    Args:
        raw (Optional[str]): The raw value; empty or None selects the defaults.

    Returns:
        List[Tuple[str, str]]: (topic, guide path) pairs in order.

    Raises:
        ConfigError: On an entry without '|', an empty topic or path, or an empty list.
    """
    if not raw or not raw.strip():
        return list(DEFAULT_STANDARDS_TOPICS)

    topics: List[Tuple[str, str]] = []
    for raw_entry in raw.split(";"):
        entry = raw_entry.strip()
        if not entry:
            continue
        if "|" not in entry:
            raise ConfigError(f"Invalid STANDARDS_TOPICS entry '{entry}' (expected 'Topic|path')")
        topic, _, guide = entry.partition("|")
        topic, guide = topic.strip(), guide.strip()
        if not topic or not guide:
            raise ConfigError(f"Invalid STANDARDS_TOPICS entry '{entry}' (topic/path cannot be empty)")
        topics.append((topic, guide))

    if not topics:
        raise ConfigError("Standards topics list is empty after parsing")
    return topics


def resolve_guide_path(standards_path: str, guide: str) -> str:
    guide_path = expand_home(guide)
    if "{{STANDARDS_PATH}}" in guide_path:
        return guide_path.replace("{{STANDARDS_PATH}}", standards_path)
    if os.path.isabs(guide_path):
        return guide_path
    if guide_path.startswith("./"):
        guide_path = guide_path[2:]
    return f"{standards_path}/{guide_path}"


def build_guide_rows(standards_path: str, topics: Optional[str] = None) -> str:
    rows = [
        f"| {topic} | `{resolve_guide_path(standards_path, guide)}` |"
        for topic, guide in parse_standards_topics(topics)
    ]
    return "\n".join(rows)


def build_standards_block(
    standards_path: str,
    topics: Optional[str] = None,
    deviation_policy: Optional[str] = None,
) -> str:
    """Renders the managed Standards Reference block, markers included, without a trailing newline."""
    path = normalize_path(expand_home(standards_path))
    return STANDARDS_BLOCK_TEMPLATE.format(
        begin=MANAGED_BEGIN,
        end=MANAGED_END,
        path=path,
        rows=build_guide_rows(path, topics),
        policy=deviation_policy or DEFAULT_DEVIATION_POLICY,
    )


def _strip_trailing_blank(lines: List[str]) -> List[str]:
    end = len(lines)
    while end and not lines[end - 1].strip():
        end -= 1
    return lines[:end]


def remove_managed_block(text: str) -> str:
    """
    Drops every managed block and every unmarked '## Standards Reference' section.

    A legacy section runs until the next '##' heading. When a removal leaves two
    blank lines next to each other, the second one is dropped.
    """
    kept: List[str] = []
    in_managed = False
    in_legacy = False
    after_removal = False

    for line in text.splitlines():
        if in_managed:
            if line.strip() == MANAGED_END:
                in_managed = False
                after_removal = True
            continue
        if line.strip() == MANAGED_BEGIN:
            in_managed = True
            in_legacy = False
            continue
        if LEGACY_HEADING_RE.match(line):
            in_legacy = True
            continue
        if in_legacy:
            if not HEADING_RE.match(line):
                continue
            in_legacy = False

        if after_removal:
            after_removal = False
            if not line.strip() and (not kept or not kept[-1].strip()):
                continue
        kept.append(line)

    return "\n".join(kept) + "\n" if kept else ""


def insert_managed_block(text: str, block: str) -> str:
    """Places the block before the first '##' heading, or at the end when there is none."""
    lines = text.splitlines()
    block_lines = block.strip("\n").splitlines()

    for index, line in enumerate(lines):
        if HEADING_RE.match(line):
            head = _strip_trailing_blank(lines[:index])
            merged = head + ([""] if head else []) + block_lines + [""] + lines[index:]
            break
    else:
        body = _strip_trailing_blank(lines)
        merged = body + ([""] if body else []) + block_lines

    return "\n".join(merged) + "\n"


def merge_standards_reference(text: str, block: str) -> str:
    """Replaces any standards section in text with block; applying it twice changes nothing."""
    return insert_managed_block(remove_managed_block(text), block)


def check_markers_balanced(text: str, agents_path: Union[str, Path]) -> None:
    """Raises AdoptionError when BEGIN/END managed markers do not pair up."""
    if text.count(MANAGED_BEGIN) != text.count(MANAGED_END):
        raise AdoptionError(
            f"Managed standards markers are unbalanced in {agents_path}; fix them before merging."
        )


def merge_standards_file(
    project_dir: Union[str, Path],
    standards_path: str,
    topics: Optional[str] = None,
    deviation_policy: Optional[str] = None,
) -> MergeResult:
    """
    Merges the managed Standards Reference block into an existing AGENTS.md.

    Content outside the block is preserved. When the file already matches,
    nothing is written; otherwise a timestamped backup is taken first.

    Args:
        project_dir (Union[str, Path]): Project containing AGENTS.md.
        standards_path (str): Path recorded in the block, absolute or project-relative.
        topics (Optional[str]): STANDARDS_TOPICS value.
        deviation_policy (Optional[str]): Deviation policy sentence.

    Returns:
        MergeResult: Whether the file changed and where the backup went.
    """
    project = Path(project_dir)
    if not project.is_dir():
        raise PreconditionError(f"Project directory does not exist: {project}")

    doc_path = normalize_path(expand_home(standards_path))
    resolved = resolve_from_project(doc_path, project)
    if not resolved.is_dir():
        raise PreconditionError(f"Standards path does not exist: {resolved}")

    agents_path = project / AGENTS_FILENAME
    if not agents_path.is_file():
        raise PreconditionError(
            f"{AGENTS_FILENAME} not found in {project}. Use adopt-into-project for first-time setup."
        )

    current = agents_path.read_text(encoding="utf-8")
    check_markers_balanced(current, agents_path)

    block = build_standards_block(doc_path, topics, deviation_policy)
    merged = merge_standards_reference(current, block)
    if merged == current:
        return {
            "agents_path": str(agents_path),
            "standards_path": doc_path,
            "changed": False,
            "backup_path": None,
        }

    backup = backup_file(agents_path)
    atomic_write_text(agents_path, merged)
    return {
        "agents_path": str(agents_path),
        "standards_path": doc_path,
        "changed": True,
        "backup_path": str(backup),
    }
