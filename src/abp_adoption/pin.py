import io
import json
import os
import re
import shutil
import subprocess
import tarfile
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from .constants import DEFAULT_PINNED_DIR, PIN_METADATA_FILENAME
from .errors import PinError, PreconditionError
from .files import expand_home, normalize_path
from .types import PinMetadata, PinResult

REF_SEPARATORS_RE = re.compile(r"[/:@ ]")
REF_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]")


def _run_git(args: List[str], cwd: Path) -> subprocess.CompletedProcess:
    """Run a git command and return the result."""
    try:
        return subprocess.run(["git"] + args, cwd=cwd, capture_output=True, text=True)
    except FileNotFoundError as exc:
        raise PinError("git executable not found on PATH") from exc


def sanitize_ref(ref: str) -> str:
    """Turns a git ref into a directory-name-safe token ('release/v1.2' -> 'release-v1.2')."""
    cleaned = REF_UNSAFE_RE.sub("", REF_SEPARATORS_RE.sub("-", ref))
    return cleaned or "ref"


def resolve_ref(repo: Path, ref: str) -> str:
    """Resolves a ref to a full commit SHA in repo."""
    inside = _run_git(["rev-parse", "--is-inside-work-tree"], repo)
    if inside.returncode != 0 or inside.stdout.strip() != "true":
        raise PinError(f"Standards path is not a git repository: {repo}")

    resolved = _run_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], repo)
    sha = resolved.stdout.strip()
    if resolved.returncode != 0 or not sha:
        raise PinError(f"Unable to resolve pinned ref '{ref}' in {repo}")
    return sha


def read_pin_metadata(snapshot_dir: Union[str, Path]) -> Optional[PinMetadata]:
    """Returns a snapshot's .abp-pin.json contents, or None if missing or unreadable."""
    metadata_path = Path(snapshot_dir) / PIN_METADATA_FILENAME
    try:
        data = json.loads(metadata_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _extract_archive(repo: Path, sha: str, destination: Path) -> None:
    try:
        archive = subprocess.run(
            ["git", "archive", "--format=tar", sha], cwd=repo, capture_output=True
        )
    except FileNotFoundError as exc:
        raise PinError("git executable not found on PATH") from exc
    if archive.returncode != 0:
        stderr = archive.stderr.decode("utf-8", errors="replace").strip()
        raise PinError(f"git archive failed for {sha}: {stderr}")

    with tarfile.open(fileobj=io.BytesIO(archive.stdout), mode="r:") as tar:
        try:
            tar.extractall(destination, filter="data")
        except tarfile.FilterError as exc:
            raise PinError(f"Refusing unsafe path in archive of {sha}: {exc}") from exc


def pin_standards_version(
    project_dir: Union[str, Path],
    standards_path: str,
    pinned_ref: str,
    pinned_dir: str = DEFAULT_PINNED_DIR,
) -> PinResult:
    """
    Snapshots the standards repository at a ref into the project.

    The snapshot lands in <project>/<pinned_dir>/<sanitized-ref>-<sha12>/ with an
    .abp-pin.json provenance file. Re-pinning a ref that still resolves to the
    recorded SHA is a no-op; a snapshot recording another SHA is rebuilt.

    Args:
        project_dir (Union[str, Path]): Project receiving the snapshot.
        standards_path (str): Git checkout of the standards repository.
        pinned_ref (str): Tag, branch or commit to pin.
        pinned_dir (str): Project-relative directory holding snapshots.

    Returns:
        PinResult: Status ('created', 'replaced' or 'unchanged') plus paths and metadata.

    Raises:
        PreconditionError: When the project or standards directory is missing.
        PinError: When git cannot resolve or archive the ref.
    """
    project = Path(project_dir)
    if not project.is_dir():
        raise PreconditionError(f"Project directory not found: {project}")
    if not pinned_ref:
        raise PreconditionError("A pinned ref is required")

    source = Path(os.path.abspath(normalize_path(expand_home(standards_path))))
    if not source.is_dir():
        raise PreconditionError(f"Standards path not found: {source}")

    sha = resolve_ref(source, pinned_ref)
    snapshot_name = f"{sanitize_ref(pinned_ref)}-{sha[:12]}"
    relative_path = f"{normalize_path(pinned_dir)}/{snapshot_name}"
    pinned_root = project.resolve() / normalize_path(pinned_dir)
    snapshot = pinned_root / snapshot_name

    status = "created"
    if snapshot.is_dir():
        existing = read_pin_metadata(snapshot)
        if existing and existing.get("resolved_sha") == sha:
            return {
                "status": "unchanged",
                "snapshot_path": str(snapshot),
                "relative_path": relative_path,
                "metadata": existing,
            }
        status = "replaced"

    remote = _run_git(["config", "--get", "remote.origin.url"], source)
    metadata: PinMetadata = {
        "source_repo_path": str(source),
        "source_repo_remote": remote.stdout.strip() if remote.returncode == 0 else "",
        "pinned_ref": pinned_ref,
        "resolved_sha": sha,
        "snapshot_name": snapshot_name,
        "pinned_at_utc": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }

    pinned_root.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{snapshot_name}.", dir=pinned_root))
    try:
        _extract_archive(source, sha, staging)
        (staging / PIN_METADATA_FILENAME).write_text(
            json.dumps(metadata, indent=2) + "\n", encoding="utf-8"
        )
        os.chmod(staging, 0o755)
        if snapshot.exists():
            shutil.rmtree(snapshot)
        os.rename(staging, snapshot)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    return {
        "status": status,
        "snapshot_path": str(snapshot),
        "relative_path": relative_path,
        "metadata": metadata,
    }
