import json
from pathlib import Path

import pytest

from abp_adoption.stack import (
    Stack,
    build_profile,
    command_for_script,
    detect_go_entry,
    detect_package_manager,
    detect_stack,
)


def _touch(root: Path, *names: str) -> None:
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("", encoding="utf-8")


@pytest.mark.parametrize(
    "manifest, expected",
    [
        ("package.json", Stack.NODE),
        ("pyproject.toml", Stack.PYTHON),
        ("requirements.txt", Stack.PYTHON),
        ("Pipfile", Stack.PYTHON),
        ("go.mod", Stack.GO),
        ("Cargo.toml", Stack.RUST),
        ("pom.xml", Stack.JVM),
        ("build.gradle.kts", Stack.JVM),
    ],
)
def test_detect_stack_by_manifest(tmp_path: Path, manifest: str, expected: Stack) -> None:
    _touch(tmp_path, manifest)
    assert detect_stack(tmp_path) == expected


def test_detect_stack_priority_order(tmp_path: Path) -> None:
    """A repo with both package.json and pyproject.toml is treated as node."""
    _touch(tmp_path, "pyproject.toml", "go.mod", "package.json")
    assert detect_stack(tmp_path) == Stack.NODE


def test_detect_stack_defaults_to_generic(tmp_path: Path) -> None:
    assert detect_stack(tmp_path) == Stack.GENERIC
    assert build_profile(tmp_path)["commands"]["build"] == "make build"


@pytest.mark.parametrize(
    "lockfile, manager",
    [("pnpm-lock.yaml", "pnpm"), ("yarn.lock", "yarn"), ("bun.lockb", "bun"), (None, "npm")],
)
def test_detect_package_manager(tmp_path: Path, lockfile, manager: str) -> None:
    if lockfile:
        _touch(tmp_path, lockfile)
    assert detect_package_manager(tmp_path) == manager


def test_command_for_script() -> None:
    assert command_for_script("npm", "test") == "npm test"
    assert command_for_script("npm", "build") == "npm run build"
    assert command_for_script("pnpm", "test") == "pnpm test"
    assert command_for_script("yarn", "lint") == "yarn lint"
    assert command_for_script("bun", "test") == "bun run test"


def test_node_profile_uses_declared_scripts(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text(
        json.dumps({"scripts": {"dev": "vite", "test": "vitest", "lint": "eslint ."}}),
        encoding="utf-8",
    )
    _touch(tmp_path, "tsconfig.json", "src/index.ts")

    profile = build_profile(tmp_path)

    assert profile["stack"] == "node"
    assert profile["language"] == "TypeScript"
    assert profile["commands"]["dev"] == "npm run dev"
    assert profile["commands"]["test"] == "npm test"
    assert profile["commands"]["lint"] == "npm run lint"
    assert profile["commands"]["build"] == "TODO: set command for build"
    assert profile["commands"]["coverage"] == "TODO: set command for test:coverage"
    assert profile["critical_paths"]["entry"] == "src/index.ts"


def test_node_profile_with_broken_manifest(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text("{not json", encoding="utf-8")
    profile = build_profile(tmp_path)
    assert profile["language"] == "JavaScript/TypeScript"
    assert all(cmd.startswith("TODO: set command for") for cmd in profile["commands"].values())


def test_python_profile_with_poetry(tmp_path: Path) -> None:
    _touch(tmp_path, "pyproject.toml", "poetry.lock", "manage.py", "app/services/__init__.py")
    profile = build_profile(tmp_path)
    assert profile["commands"]["dev"] == "poetry run python manage.py runserver"
    assert profile["commands"]["test"] == "poetry run pytest"
    assert profile["critical_paths"]["entry"] == "manage.py"
    assert profile["critical_paths"]["services"] == "app/services"
    assert profile["critical_paths"]["config"] == "config/"


def test_go_entry_prefers_cmd_main(tmp_path: Path) -> None:
    _touch(tmp_path, "go.mod", "main.go", "cmd/api/main.go")
    assert detect_go_entry(tmp_path) == "cmd/api/main.go"
    assert build_profile(tmp_path)["critical_paths"]["entry"] == "cmd/api/main.go"


def test_go_entry_fallback(tmp_path: Path) -> None:
    assert detect_go_entry(tmp_path) == "cmd/<service>/main.go"


def test_jvm_commands_follow_build_tool(tmp_path: Path) -> None:
    _touch(tmp_path, "pom.xml", "mvnw")
    assert build_profile(tmp_path)["commands"]["test"] == "./mvnw test"

    _touch(tmp_path, "build.gradle")
    assert build_profile(tmp_path)["commands"]["test"] == "./gradlew test"


def test_explicit_stack_skips_detection(tmp_path: Path) -> None:
    _touch(tmp_path, "package.json")
    assert build_profile(tmp_path, Stack.RUST)["commands"]["build"] == "cargo build --release"
