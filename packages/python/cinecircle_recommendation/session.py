from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field


class ShuffleSession(BaseModel):
    """Caller-held state of one shuffle session.

    Movies already shown are penalized, never excluded. Values are immutable;
    ``advance`` returns the state for the next call.
    """

    model_config = ConfigDict(frozen=True)

    shown_ids: tuple[int, ...] = Field(default_factory=tuple)
    page: int = Field(default=1, ge=1)

    @property
    def shown(self) -> frozenset[int]:
        return frozenset(self.shown_ids)

    def advance(self, returned_ids: Iterable[int]) -> "ShuffleSession":
        shown = list(self.shown_ids)
        for mid in returned_ids:
            if mid not in shown:
                shown.append(mid)
        return ShuffleSession(shown_ids=tuple(shown), page=self.page + 1)
