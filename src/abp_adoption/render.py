import re
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from .constants import (
    AGENTS_TEMPLATE,
    COMMAND_KEYS,
    COMMAND_PLACEHOLDERS,
    CRITICAL_PATH_PLACEHOLDERS,
    DEFAULT_AGENT_ROLE,
    DEFAULT_DEVIATION_POLICY,
    DEFAULT_PRIORITIES,
    DEFAULT_PROJECT_DESCRIPTION,
    FIXED_PLACEHOLDER_VALUES,
    IDENTITY_PLACEHOLDERS,
    LEGACY_STANDARDS_HOME,
    SETUP_INSTRUCTIONS_MARKER,
    STACK_PLACEHOLDERS,
    TEMPLATE_PLACEHOLDERS,
    UNRESOLVED_VALUE,
)
from .errors import PreconditionError, TemplateError
from .files import expand_home, normalize_path
from .merge import build_guide_rows, build_standards_block, merge_standards_reference
from .stack import build_profile
from .types import AdoptionConfig, StackProfile

TOKEN_RE = re.compile(r"\{\{([A-Z][A-Z0-9_]*)\}\}")

SETUP_BLOCK_RE = re.compile(
    r"<!--(?:(?!-->).)*?" + re.escape(SETUP_INSTRUCTIONS_MARKER) + r".*?-->[ \t]*\n?",
    re.DOTALL,
)


def load_template(template_path: Optional[Union[str, Path]] = None) -> str:
    """Returns the built-in AGENTS.md template, or the contents of template_path."""
    if template_path is None:
        return AGENTS_TEMPLATE
    path = Path(expand_home(str(template_path)))
    if not path.is_file():
        raise PreconditionError(f"Template file not found: {path}")
    return path.read_text(encoding="utf-8")


def build_placeholder_values(
    profile: StackProfile, values: AdoptionConfig, project_name: str
) -> Dict[str, Optional[str]]:
    """
    Binds every bracketed template placeholder to its rendered text.

    Command overrides (dev_cmd, test_cmd, ...) in values replace the commands
    detected for the stack. A None value renders as TBD.
    """
    identity = {
        "project_name": project_name,
        "agent_role": values.get("agent_role") or DEFAULT_AGENT_ROLE,
        "project_description": values.get("project_description") or DEFAULT_PROJECT_DESCRIPTION,
        "priority_one": values.get("priority_one") or DEFAULT_PRIORITIES[0],
        "priority_two": values.get("priority_two") or DEFAULT_PRIORITIES[1],
        "priority_three": values.get("priority_three") or DEFAULT_PRIORITIES[2],
    }

    bound: Dict[str, Optional[str]] = dict(FIXED_PLACEHOLDER_VALUES)
    for key, placeholder in IDENTITY_PLACEHOLDERS.items():
        bound[placeholder] = identity[key]
    for key, placeholder in STACK_PLACEHOLDERS.items():
        bound[placeholder] = profile.get(key)  # type: ignore[misc]
    for key in COMMAND_KEYS:
        override = values.get(f"{key}_cmd")  # type: ignore[misc]
        bound[COMMAND_PLACEHOLDERS[key]] = override or profile["commands"][key]  # type: ignore[literal-required]
    for key, placeholder in CRITICAL_PATH_PLACEHOLDERS.items():
        bound[placeholder] = profile["critical_paths"][key]  # type: ignore[literal-required]
    return bound


def substitute(
    template: str,
    tokens: Mapping[str, str],
    placeholders: Optional[Mapping[str, Optional[str]]] = None,
) -> str:
    """
    Replaces {{TOKEN}} markers and bracketed placeholders in one pass.

    Substituted text is never rescanned, so values may safely contain
    brackets or braces.

    Raises:
        TemplateError: When the template uses a {{TOKEN}} with no bound value.
    """
    literals = set(placeholders or {})
    if placeholders is not None:
        literals.update(TEMPLATE_PLACEHOLDERS)
    if "STANDARDS_PATH" in tokens:
        literals.add(LEGACY_STANDARDS_HOME)

    alternatives = [TOKEN_RE.pattern]
    alternatives += [re.escape(literal) for literal in sorted(literals, key=len, reverse=True)]
    pattern = re.compile("|".join(alternatives))

    def _replace(match: "re.Match[str]") -> str:
        token = match.group(1)
        if token is not None:
            if token not in tokens:
                raise TemplateError(f"Template token {{{{{token}}}}} has no bound value")
            return tokens[token]
        literal = match.group(0)
        if literal == LEGACY_STANDARDS_HOME:
            return tokens["STANDARDS_PATH"]
        return (placeholders or {}).get(literal) or UNRESOLVED_VALUE

    return pattern.sub(_replace, template)


def strip_setup_instructions(text: str) -> str:
    return SETUP_BLOCK_RE.sub("", text)


def render_agents_md(
    project_dir: Union[str, Path],
    standards_path: str,
    values: AdoptionConfig,
    template: Optional[str] = None,
    profile: Optional[StackProfile] = None,
) -> str:
    """
    Renders AGENTS.md text for a project.

    Args:
        project_dir (Union[str, Path]): The project root (used for stack detection).
        standards_path (str): Standards path recorded in the file.
        values (AdoptionConfig): Identity, topics, policy and command overrides.
        template (Optional[str]): Template text; the built-in template when None.
        profile (Optional[StackProfile]): Pre-computed stack profile.

    Returns:
        str: The rendered file, with exactly one managed Standards Reference block.
    """
    project = Path(project_dir)
    doc_path = normalize_path(expand_home(standards_path))
    profile = profile or build_profile(project)
    project_name = values.get("project_name") or project.resolve().name

    topics = values.get("standards_topics")
    policy = values.get("deviation_policy")
    block = build_standards_block(doc_path, topics, policy)
    tokens = {
        "STANDARDS_PATH": doc_path,
        "STANDARDS_GUIDE_ROWS": build_guide_rows(doc_path, topics),
        "DEVIATION_POLICY": policy or DEFAULT_DEVIATION_POLICY,
        "STANDARDS_REFERENCE": block,
        "PROJECT_NAME": project_name,
    }

    rendered = substitute(
        template if template is not None else AGENTS_TEMPLATE,
        tokens,
        build_placeholder_values(profile, values, project_name),
    )
    rendered = strip_setup_instructions(rendered)
    return merge_standards_reference(rendered, block)
