import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union, cast

from .console import print_warning
from .constants import (
    CONFIG_KEYS,
    DEFAULT_PILOT_DIR,
    DEFAULT_PINNED_DIR,
    DEFAULT_STANDARDS_DIRNAME,
    PYPROJECT_TOOL_TABLE,
    STANDARDS_HOME_ENV,
)
from .errors import ConfigError, PreconditionError
from .types import AdoptionConfig, Settings


def default_standards_path(environ: Optional[Mapping[str, str]] = None) -> str:
    """Standards checkout location: $AGENTIC_BEST_PRACTICES_HOME or ~/agentic-best-practices."""
    env = os.environ if environ is None else environ
    override = env.get(STANDARDS_HOME_ENV, "").strip()
    if override:
        return override
    return str(Path.home() / DEFAULT_STANDARDS_DIRNAME)


def _merge_settings(base: Settings, override: Dict[str, Any]) -> Settings:
    """Overlay known string keys from a pyproject table onto the defaults."""
    result = dict(base)
    for key, value in override.items():
        name = key.replace("-", "_")
        if name not in result:
            print_warning(f"Ignoring unknown key '{key}' in [tool.{PYPROJECT_TOOL_TABLE}]")
            continue
        if not isinstance(value, str):
            raise ConfigError(f"[tool.{PYPROJECT_TOOL_TABLE}] {key} must be a string")
        result[name] = value
    return cast(Settings, result)


def load_settings(
    path: Union[str, Path] = ".", environ: Optional[Mapping[str, str]] = None
) -> Settings:
    """
    Loads tool settings for a project directory.

    Defaults come from the environment; a [tool.agentic-best-practices] table in
    the project's pyproject.toml overrides them. Command-line flags override both
    at the call site.
    """
    defaults: Settings = {
        "standards_path": default_standards_path(environ),
        "pinned_dir": DEFAULT_PINNED_DIR,
        "pilot_dir": DEFAULT_PILOT_DIR,
    }

    config_path = Path(path) / "pyproject.toml"
    if not config_path.is_file():
        return defaults

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        # A broken pyproject belongs to the project, not to us; fall back to defaults.
        print_warning(f"Could not read {config_path}: {exc}")
        return defaults

    table = data.get("tool", {}).get(PYPROJECT_TOOL_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigError(f"[tool.{PYPROJECT_TOOL_TABLE}] in {config_path} must be a table")
    return _merge_settings(defaults, table)


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_adoption_config(text: str, source: str = "<config>") -> AdoptionConfig:
    """
    Parses KEY=VALUE adoption config text.

    Blank lines and lines starting with '#' are skipped. Keys and values are
    trimmed and one pair of wrapping quotes is removed from the value. Unknown
    keys are reported as warnings and ignored.

    Args:
        text (str): Config file contents.
        source (str): Name used in error and warning messages.

    Returns:
        AdoptionConfig: The recognised values, keyed by option name.

    Raises:
        ConfigError: When a non-comment line has no '='.
    """
    values: Dict[str, str] = {}
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            raise ConfigError(f"{source}:{lineno}: expected KEY=VALUE, got '{line}'")

        key, _, value = line.partition("=")
        key = key.strip()
        option = CONFIG_KEYS.get(key)
        if option is None:
            print_warning(f"{source}:{lineno}: ignoring unknown config key '{key}'")
            continue
        values[option] = _unquote(value.strip())

    return cast(AdoptionConfig, values)


def load_adoption_config(path: Union[str, Path]) -> AdoptionConfig:
    """Reads and parses an adoption config file."""
    config_path = Path(path).expanduser()
    if not config_path.is_file():
        raise PreconditionError(f"Config file not found: {config_path}")
    return parse_adoption_config(config_path.read_text(encoding="utf-8"), str(config_path))
