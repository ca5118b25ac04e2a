import json
from enum import Enum
from pathlib import Path
from typing import Dict, Tuple, Union

from .constants import TODO_COMMAND_PREFIX
from .types import Commands, CriticalPaths, StackProfile

PathLike = Union[str, Path]


class Stack(str, Enum):
    NODE = "node"
    PYTHON = "python"
    GO = "go"
    RUST = "rust"
    JVM = "jvm"
    GENERIC = "generic"


# Checked in order; the first stack with a manifest present wins.
STACK_MANIFESTS: Tuple[Tuple[Stack, Tuple[str, ...]], ...] = (
    (Stack.NODE, ("package.json",)),
    (Stack.PYTHON, ("pyproject.toml", "requirements.txt", "setup.py", "Pipfile")),
    (Stack.GO, ("go.mod",)),
    (Stack.RUST, ("Cargo.toml",)),
    (Stack.JVM, ("pom.xml", "build.gradle", "build.gradle.kts")),
)

NODE_SCRIPTS: Dict[str, str] = {
    "dev": "dev",
    "test": "test",
    "coverage": "test:coverage",
    "lint": "lint",
    "typecheck": "typecheck",
    "build": "build",
}


def detect_stack(project_dir: PathLike) -> Stack:
    """Returns the project's stack; directories without a known manifest are generic."""
    root = Path(project_dir)
    for stack, manifests in STACK_MANIFESTS:
        if any((root / name).is_file() for name in manifests):
            return stack
    return Stack.GENERIC


def choose_existing_path(project_dir: PathLike, fallback: str, *candidates: str) -> str:
    root = Path(project_dir)
    for candidate in candidates:
        if (root / candidate).exists():
            return candidate
    return fallback


def detect_package_manager(project_dir: PathLike) -> str:
    root = Path(project_dir)
    if (root / "pnpm-lock.yaml").is_file():
        return "pnpm"
    if (root / "yarn.lock").is_file():
        return "yarn"
    if (root / "bun.lock").is_file() or (root / "bun.lockb").is_file():
        return "bun"
    return "npm"


def read_package_scripts(project_dir: PathLike) -> Dict[str, str]:
    """Reads package.json "scripts"; an unreadable manifest counts as having none."""
    try:
        data = json.loads((Path(project_dir) / "package.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    scripts = data.get("scripts") if isinstance(data, dict) else None
    return scripts if isinstance(scripts, dict) else {}


def command_for_script(package_manager: str, script: str) -> str:
    if script == "test" and package_manager != "bun":
        return f"{package_manager} test"
    if package_manager == "yarn":
        return f"yarn {script}"
    return f"{package_manager} run {script}"


def todo_command(script: str) -> str:
    return f"{TODO_COMMAND_PREFIX} {script}"


def detect_go_entry(project_dir: PathLike) -> str:
    root = Path(project_dir)
    for candidate in sorted(root.glob("cmd/*/main.go")):
        return candidate.relative_to(root).as_posix()
    if (root / "main.go").is_file():
        return "main.go"
    return "cmd/<service>/main.go"


def _profile(
    stack: Stack,
    language: str,
    runtime: Tuple[str, str],
    framework: str,
    testing: str,
    commands: Commands,
    critical_paths: CriticalPaths,
) -> StackProfile:
    return {
        "stack": stack.value,
        "language": language,
        "language_version": "TBD",
        "runtime": runtime[0],
        "runtime_version": runtime[1],
        "framework": framework,
        "framework_version": "TBD",
        "testing": testing,
        "testing_version": "TBD",
        "commands": commands,
        "critical_paths": critical_paths,
    }


def _node_profile(root: Path) -> StackProfile:
    package_manager = detect_package_manager(root)
    scripts = read_package_scripts(root)
    commands = {
        key: command_for_script(package_manager, script) if script in scripts else todo_command(script)
        for key, script in NODE_SCRIPTS.items()
    }
    has_tsconfig = (root / "tsconfig.json").is_file() or (root / "tsconfig.base.json").is_file()
    return _profile(
        Stack.NODE,
        "TypeScript" if has_tsconfig else "JavaScript/TypeScript",
        ("Node.js", "20+"),
        "Express/Next.js/TBD",
        "Jest/Vitest/TBD",
        Commands(**commands),
        {
            "entry": choose_existing_path(root, "src/index.ts", "src/index.ts", "src/index.js", "index.ts", "index.js"),
            "config": choose_existing_path(root, "src/config/", "src/config", "config"),
            "routes": choose_existing_path(root, "src/routes/", "src/routes", "routes"),
            "services": choose_existing_path(root, "src/services/", "src/services", "services", "src/lib"),
            "types": choose_existing_path(root, "src/types/", "src/types", "types"),
        },
    )


def _python_runner(root: Path) -> str:
    if (root / "uv.lock").is_file():
        return "uv run "
    if (root / "poetry.lock").is_file():
        return "poetry run "
    if (root / "Pipfile.lock").is_file() or (root / "Pipfile").is_file():
        return "pipenv run "
    return ""


def _python_profile(root: Path) -> StackProfile:
    prefix = _python_runner(root)
    if (root / "manage.py").is_file():
        dev = "python manage.py runserver"
    elif (root / "app.py").is_file():
        dev = "python app.py"
    elif (root / "src/main.py").is_file():
        dev = "python src/main.py"
    elif (root / "main.py").is_file():
        dev = "python main.py"
    else:
        dev = "python -m app"

    return _profile(
        Stack.PYTHON,
        "Python",
        ("Python", "3.11+"),
        "Django/FastAPI/TBD",
        "pytest",
        {
            "dev": prefix + dev,
            "test": prefix + "pytest",
            "coverage": prefix + "pytest --cov",
            "lint": prefix + "ruff check .",
            "typecheck": prefix + "mypy .",
            "build": prefix + "python -m build",
        },
        {
            "entry": choose_existing_path(root, "src/main.py", "manage.py", "app.py", "src/main.py", "main.py"),
            "config": choose_existing_path(root, "config/", "app/config", "src/config", "config"),
            "routes": choose_existing_path(root, "app/routes/", "app/routes", "src/routes", "routes"),
            "services": choose_existing_path(root, "app/services/", "app/services", "src/services", "services"),
            "types": choose_existing_path(root, "app/schemas/", "app/schemas", "src/types", "types"),
        },
    )


def _go_profile(root: Path) -> StackProfile:
    return _profile(
        Stack.GO,
        "Go",
        ("Go", "1.22+"),
        "net/http/Fiber/TBD",
        "go test",
        {
            "dev": "go run .",
            "test": "go test ./...",
            "coverage": "go test ./... -cover",
            "lint": "go vet ./...",
            "typecheck": "go test ./...",
            "build": "go build ./...",
        },
        {
            "entry": detect_go_entry(root),
            "config": choose_existing_path(root, "internal/config/", "internal/config", "pkg/config", "config"),
            "routes": choose_existing_path(root, "internal/http/", "internal/http", "pkg/http", "api"),
            "services": choose_existing_path(root, "internal/service/", "internal/service", "pkg/service", "service"),
            "types": choose_existing_path(root, "internal/types/", "internal/types", "pkg/types", "api/types"),
        },
    )


def _rust_profile(root: Path) -> StackProfile:
    return _profile(
        Stack.RUST,
        "Rust",
        ("Rust", "stable"),
        "Axum/Actix/TBD",
        "cargo test",
        {
            "dev": "cargo run",
            "test": "cargo test",
            "coverage": "cargo test",
            "lint": "cargo clippy --all-targets --all-features -- -D warnings",
            "typecheck": "cargo check",
            "build": "cargo build --release",
        },
        {
            "entry": choose_existing_path(root, "src/main.rs", "src/main.rs", "src/lib.rs"),
            "config": choose_existing_path(root, "config/", "src/config", "config"),
            "routes": choose_existing_path(root, "src/routes/", "src/routes", "src/http"),
            "services": choose_existing_path(root, "src/services/", "src/services", "src/domain"),
            "types": choose_existing_path(root, "src/types/", "src/types", "src/domain/types"),
        },
    )


def _jvm_commands(root: Path) -> Commands:
    gradle_files = ("gradlew", "build.gradle", "build.gradle.kts")
    if any((root / name).is_file() for name in gradle_files):
        return {
            "dev": "./gradlew run",
            "test": "./gradlew test",
            "coverage": "./gradlew test",
            "lint": "./gradlew check",
            "typecheck": "./gradlew classes",
            "build": "./gradlew build",
        }

    mvn = "./mvnw" if (root / "mvnw").is_file() else "mvn"
    return {
        "dev": f"{mvn} spring-boot:run",
        "test": f"{mvn} test",
        "coverage": f"{mvn} test",
        "lint": f"{mvn} -q -DskipTests verify",
        "typecheck": f"{mvn} -q -DskipTests compile",
        "build": f"{mvn} -DskipTests package",
    }


def _jvm_profile(root: Path) -> StackProfile:
    sources = ("src/main/java", "src/main/kotlin")
    return _profile(
        Stack.JVM,
        "Java/Kotlin",
        ("JVM", "17+"),
        "Spring Boot/TBD",
        "JUnit/TestNG",
        _jvm_commands(root),
        {
            "entry": choose_existing_path(root, "src/main/java/", *sources),
            "config": choose_existing_path(root, "src/main/resources/", "src/main/resources", "config"),
            "routes": choose_existing_path(root, "src/main/java/", *sources),
            "services": choose_existing_path(root, "src/main/java/", *sources),
            "types": choose_existing_path(root, "src/main/java/", *sources),
        },
    )


def _generic_profile(root: Path) -> StackProfile:
    return _profile(
        Stack.GENERIC,
        "TBD",
        ("TBD", "TBD"),
        "TBD",
        "TBD",
        {
            "dev": "make dev",
            "test": "make test",
            "coverage": "make test-coverage",
            "lint": "make lint",
            "typecheck": "make typecheck",
            "build": "make build",
        },
        {
            "entry": choose_existing_path(root, "src/", "src", "app"),
            "config": choose_existing_path(root, "config/", "config", "src/config"),
            "routes": choose_existing_path(root, "src/", "src/routes", "routes"),
            "services": choose_existing_path(root, "src/", "src/services", "services"),
            "types": choose_existing_path(root, "src/", "src/types", "types"),
        },
    )


def build_profile(project_dir: PathLike, stack: Union[Stack, None] = None) -> StackProfile:
    """
    Derives language, runtime, commands and critical paths for a project.

    Args:
        project_dir (PathLike): The project root.
        stack (Stack, optional): Skip detection and use this stack.

    Returns:
        StackProfile: Values bound into the AGENTS.md template.
    """
    root = Path(project_dir)
    match stack or detect_stack(root):
        case Stack.NODE:
            return _node_profile(root)
        case Stack.PYTHON:
            return _python_profile(root)
        case Stack.GO:
            return _go_profile(root)
        case Stack.RUST:
            return _rust_profile(root)
        case Stack.JVM:
            return _jvm_profile(root)
        case _:
            return _generic_profile(root)
