import re
from collections import defaultdict
from typing import Mapping

from cinecircle_core.config import POPULARITY_FLOOR

from .types import ScoredCandidate

# Sequel markers stripped in order to find a franchise's base title
_SEQUEL_PATTERNS = (
    re.compile(r"\s*[:\-–—]\s*Part\s+\w+$", re.IGNORECASE),
    re.compile(r"\s*[:\-–—]\s*Chapter\s+\w+$", re.IGNORECASE),
    re.compile(r"\s+\d+\s*$"),
    re.compile(r"\s+[IVXLC]+\s*$"),
)


def franchise_key(title: str) -> str:
    base = title.strip()
    for pattern in _SEQUEL_PATTERNS:
        base = pattern.sub("", base)
    return base.strip().lower()


def diversify_by_franchise(
    candidates: list[ScoredCandidate],  # descending score order
    *,
    per_franchise_cap: int = 1,
) -> tuple[list[ScoredCandidate], list[dict]]:
    counts: dict[str, int] = defaultdict(int)
    out, pruned = [], []
    for c in candidates:
        key = franchise_key(c.candidate.title) or f"__solo__:{c.id}"
        if counts[key] >= per_franchise_cap:
            pruned.append({"movie_id": c.id, "franchise": key, "title": c.candidate.title})
            continue
        out.append(c)
        counts[key] += 1
    return out, pruned


def apply_popularity_floor(
    candidates: list[ScoredCandidate],
    collaborative: Mapping[int, float],
    floor: float = POPULARITY_FLOOR,
) -> list[ScoredCandidate]:
    """Drop obscure titles unless taste-similar peers surfaced them."""
    floor = max(POPULARITY_FLOOR, floor)
    return [
        c
        for c in candidates
        if c.candidate.popularity >= floor or c.id in collaborative
    ]
