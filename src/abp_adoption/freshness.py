import time
from pathlib import Path
from typing import List, Optional, Union

from .constants import GUIDE_FRESHNESS_DAYS
from .errors import PreconditionError
from .files import expand_home
from .types import FreshnessReport, StaleGuide

SECONDS_PER_DAY = 86400


def check_guide_freshness(
    standards_path: Union[str, Path],
    threshold_days: int = GUIDE_FRESHNESS_DAYS,
    now: Optional[float] = None,
) -> FreshnessReport:
    """
    Lists guides under <standards>/guides/ not modified within threshold_days.

    Age is whole days since the file's mtime; a guide is stale when its age
    exceeds the threshold.
    """
    root = Path(expand_home(str(standards_path)))
    guides_dir = root / "guides"
    if not guides_dir.is_dir():
        raise PreconditionError(f"Guides directory not found: {guides_dir}")
    if threshold_days < 0:
        raise PreconditionError("--threshold-days must be a non-negative integer.")

    current = time.time() if now is None else now
    guides = sorted(p for p in guides_dir.rglob("*.md") if p.is_file())
    stale: List[StaleGuide] = []
    for guide in guides:
        age_days = int((current - guide.stat().st_mtime) // SECONDS_PER_DAY)
        if age_days > threshold_days:
            stale.append({"path": guide.relative_to(root).as_posix(), "age_days": age_days})

    total = len(guides)
    return {
        "standards_path": str(root),
        "total": total,
        "stale": stale,
        "stale_percent": (len(stale) * 100 / total) if total else 0.0,
    }
