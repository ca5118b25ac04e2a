from pathlib import Path

import pytest

from abp_adoption.config import default_standards_path, load_adoption_config, load_settings, parse_adoption_config
from abp_adoption.constants import DEFAULT_PILOT_DIR, DEFAULT_PINNED_DIR
from abp_adoption.errors import ConfigError, PreconditionError


def test_default_standards_path_from_env() -> None:
    assert default_standards_path({"AGENTIC_BEST_PRACTICES_HOME": "/srv/abp"}) == "/srv/abp"
    assert default_standards_path({}) == str(Path.home() / "agentic-best-practices")


def test_load_settings_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path, environ={"AGENTIC_BEST_PRACTICES_HOME": "/srv/abp"})
    assert settings == {
        "standards_path": "/srv/abp",
        "pinned_dir": DEFAULT_PINNED_DIR,
        "pilot_dir": DEFAULT_PILOT_DIR,
    }


def test_load_settings_with_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[tool.agentic-best-practices]\nstandards-path = "vendor/abp"\npilot_dir = "docs/pilot"\n',
        encoding="utf-8",
    )
    settings = load_settings(tmp_path, environ={})
    assert settings["standards_path"] == "vendor/abp"
    assert settings["pilot_dir"] == "docs/pilot"
    assert settings["pinned_dir"] == DEFAULT_PINNED_DIR


def test_load_settings_invalid_toml(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("invalid = [", encoding="utf-8")
    settings = load_settings(tmp_path, environ={"AGENTIC_BEST_PRACTICES_HOME": "/srv/abp"})
    assert settings["standards_path"] == "/srv/abp"


def test_load_settings_rejects_non_string(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        "[tool.agentic-best-practices]\npinned_dir = 3\n", encoding="utf-8"
    )
    with pytest.raises(ConfigError):
        load_settings(tmp_path, environ={})


def test_parse_adoption_config(capsys: pytest.CaptureFixture) -> None:
    text = """
# comment line
PROJECT_NAME = "Payments API"
PRIORITY_ONE='Auditability over speed'
STANDARDS_TOPICS=Logging|guides/logging.md;Testing|guides/testing.md
DEV_CMD=make run = now
UNKNOWN_KEY=value
"""
    values = parse_adoption_config(text, "adoption.env")

    assert values == {
        "project_name": "Payments API",
        "priority_one": "Auditability over speed",
        "standards_topics": "Logging|guides/logging.md;Testing|guides/testing.md",
        "dev_cmd": "make run = now",
    }
    assert "adoption.env:7: ignoring unknown config key 'UNKNOWN_KEY'" in capsys.readouterr().err


def test_parse_adoption_config_rejects_bare_line() -> None:
    with pytest.raises(ConfigError, match="adoption.env:2"):
        parse_adoption_config("PROJECT_NAME=x\nnot a pair\n", "adoption.env")


def test_load_adoption_config_missing(tmp_path: Path) -> None:
    with pytest.raises(PreconditionError):
        load_adoption_config(tmp_path / "absent.env")
