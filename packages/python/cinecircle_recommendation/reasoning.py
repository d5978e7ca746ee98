from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence

from cinecircle_profile.types import GroupPreferenceProfile
from cinecircle_ranking.types import ScoredCandidate


@dataclass(frozen=True)
class Reasoning:
    summary: str
    pairing: Optional[str] = None  # snack/drink pairing


class ReasoningGenerator(Protocol):
    """Writes prose for the final picks. Failures never affect the ranking."""

    async def generate(
        self,
        picks: Sequence[ScoredCandidate],
        profile: GroupPreferenceProfile,
        moods: Sequence[str],
    ) -> Mapping[int, Reasoning]: ...
