from enum import Enum
from typing import Annotated, Optional, Tuple

from pydantic import AfterValidator, BaseModel, Field


class Mood(str, Enum):
    FUN = "fun"
    FUNNY = "funny"
    INTENSE = "intense"
    EMOTIONAL = "emotional"
    MINDLESS = "mindless"
    ACCLAIMED = "acclaimed"
    SCARY = "scary"


class Audience(str, Enum):
    ANYONE = "anyone"
    TEENS = "teens"
    ADULTS = "adults"


class ContentRating(str, Enum):
    G = "G"
    PG = "PG"
    PG_13 = "PG-13"
    R = "R"


class Severity(str, Enum):
    NONE = "None"
    MILD = "Mild"
    MODERATE = "Moderate"
    SEVERE = "Severe"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.NONE: 0,
    Severity.MILD: 1,
    Severity.MODERATE: 2,
    Severity.SEVERE: 3,
}


class AdvisoryCategory(str, Enum):
    VIOLENCE = "violence"
    SEX_NUDITY = "sex_nudity"
    PROFANITY = "profanity"
    SUBSTANCES = "substances"
    FRIGHTENING = "frightening"


class Genre:
    ACTION = 28
    ADVENTURE = 12
    ANIMATION = 16
    COMEDY = 35
    CRIME = 80
    DOCUMENTARY = 99
    DRAMA = 18
    FAMILY = 10751
    HISTORY = 36
    HORROR = 27
    MYSTERY = 9648
    ROMANCE = 10749
    THRILLER = 53
    WAR = 10752


def _validate_limits(limits: dict) -> dict:
    for key in limits:
        AdvisoryCategory(key)
    return limits


AdvisoryLimits = Annotated[
    dict[str, Severity], AfterValidator(_validate_limits)
]


class PickConstraints(BaseModel):
    """Hard constraints a request places on every candidate."""

    moods: list[Mood] = Field(default_factory=list)
    audience: Audience = Audience.ANYONE
    max_runtime: Optional[int] = Field(default=None, gt=0)
    era: Optional[str] = Field(default=None, examples=["1980s", "Pre-40s"])
    start_year: Optional[int] = Field(default=None, ge=1878, le=2100)
    content_rating: Optional[ContentRating] = None
    provider_ids: list[int] = Field(default_factory=list)
    watch_region: str = "US"
    advisory_limits: AdvisoryLimits = Field(default_factory=dict)

    @property
    def mood_keys(self) -> list[str]:
        return [m.value for m in self.moods]

    def era_window(self) -> Tuple[Optional[str], Optional[str]]:
        """Release-date window (gte, lte) as ISO dates for the era/start-year filters."""
        gte: Optional[str] = None
        lte: Optional[str] = None
        if self.era == "Pre-40s":
            lte = "1939-12-31"
        elif self.era and self.era.endswith("s") and self.era[:-1].isdigit():
            decade = int(self.era[:-1])
            gte, lte = f"{decade}-01-01", f"{decade + 9}-12-31"
        if self.start_year is not None:
            start = f"{self.start_year}-01-01"
            gte = max(gte, start) if gte else start
        return gte, lte


CERTIFICATION_ORDER = ("G", "PG", "PG-13", "R", "NC-17")


_AUDIENCE_FLOOR = {
    Audience.ANYONE: None,
    Audience.TEENS: ContentRating.PG.value,
    Audience.ADULTS: ContentRating.PG_13.value,
}


def certification_bounds(
    audience: Audience, content_rating: Optional[ContentRating]
) -> Tuple[Optional[str], Optional[str]]:
    """(floor, ceiling) certifications implied by the audience and content rating.

    An explicit content rating replaces the audience floor.
    """
    if content_rating is not None:
        return None, content_rating.value
    return _AUDIENCE_FLOOR[audience], None


def certification_allowed(
    certification: Optional[str], floor: Optional[str], ceiling: Optional[str]
) -> bool:
    # Unrated or unknown certifications are not filtered
    if certification not in CERTIFICATION_ORDER:
        return True
    rank = CERTIFICATION_ORDER.index(certification)
    if floor is not None and rank < CERTIFICATION_ORDER.index(floor):
        return False
    if ceiling is not None and rank > CERTIFICATION_ORDER.index(ceiling):
        return False
    return True
