import os
import shutil
import stat
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


def expand_home(path: str) -> str:
    """Expands a leading '~' (alone or followed by '/') to the home directory."""
    if path == "~" or path.startswith("~/"):
        return os.path.expanduser(path)
    return path


def normalize_path(path: str) -> str:
    """Strips trailing slashes so the path can be embedded as `<path>/`."""
    stripped = path.rstrip("/")
    return stripped or "/"


def resolve_from_project(path: str, project_dir: PathLike) -> Path:
    """Resolves a path as AGENTS.md readers see it: relative to the project directory."""
    expanded = expand_home(path)
    if os.path.isabs(expanded):
        return Path(os.path.normpath(expanded))
    return Path(os.path.normpath(os.path.join(os.path.abspath(project_dir), expanded)))


def backup_path_for(path: PathLike) -> Path:
    """Returns `<file>.bak.<YYYYmmddHHMMSS>`, suffixed `.N` if that name is taken."""
    target = Path(path)
    stamp = datetime.now().strftime("%Y%m%d%H%M%S")
    candidate = target.with_name(f"{target.name}.bak.{stamp}")
    counter = 1
    while os.path.lexists(candidate):
        candidate = target.with_name(f"{target.name}.bak.{stamp}.{counter}")
        counter += 1
    return candidate


def backup_file(path: PathLike, move: bool = False) -> Path:
    """
    Preserves the current version of a file before it is replaced.

    Args:
        path (PathLike): File (or symlink) to back up.
        move (bool): Rename instead of copy, leaving the original name free.

    Returns:
        Path: The backup location.
    """
    source = Path(path)
    backup = backup_path_for(source)
    if move:
        os.rename(source, backup)
    else:
        shutil.copy2(source, backup, follow_symlinks=False)
    return backup


def atomic_write_text(path: PathLike, content: str) -> None:
    """Writes through a sibling temp file and os.replace, so readers never see a partial file."""
    target = Path(path)
    mode = 0o644
    if target.exists():
        mode = stat.S_IMODE(target.stat().st_mode)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
