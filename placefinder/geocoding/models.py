"""Value types shared by every tier of the resolution chain."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class LocationCandidate:
    """A resolved place, normalized from whichever provider produced it.

    Attributes:
        id: Provider-qualified identifier, e.g. ``nominatim-123`` or
            ``local-florence``. Unique within a result set.
        name: Canonical (English) city name.
        country: Country display name.
        country_code: ISO 3166-1 alpha-2 code, upper case.
        region: State, province or county.
        latitude: Decimal degrees.
        longitude: Decimal degrees.
        population: Used only for ranking.
        localized_name: Spelling in the active language, set only when it
            differs from ``name``.
    """

    id: str
    name: str
    country: str
    latitude: float
    longitude: float
    country_code: str = ""
    region: str = ""
    population: Optional[int] = None
    localized_name: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.name}, {self.country}"

    @property
    def source(self) -> str:
        return self.id.split("-", 1)[0]

    def is_valid(self) -> bool:
        try:
            return -90.0 <= float(self.latitude) <= 90.0 and -180.0 <= float(self.longitude) <= 180.0
        except (TypeError, ValueError):
            return False

    def with_localized_name(self, value: Optional[str]) -> LocationCandidate:
        """Return a copy carrying ``value`` as localized name when it adds information."""
        if value and value.strip() and value.strip().lower() != self.name.lower():
            return replace(self, localized_name=value.strip())
        return replace(self, localized_name=None)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["label"] = self.label
        return data


@dataclass(frozen=True)
class NearbyPlace:
    id: str
    name: str
    latitude: float
    longitude: float
    address: str = ""
    types: Tuple[str, ...] = ()
    distance_m: Optional[float] = None


class TierOutcome(enum.Enum):
    SUCCESS = "success"
    NO_DATA = "no_data"
    FAILURE = "failure"


@dataclass(frozen=True)
class TierResult:
    """Outcome of asking one tier for candidates.

    ``NO_DATA`` is a successful call that produced nothing usable (or a tier
    that is not configured); ``FAILURE`` is a provider error that counts
    against the circuit breaker.
    """

    outcome: TierOutcome
    candidates: Tuple[LocationCandidate, ...] = field(default_factory=tuple)
    reason: str = ""
    rate_limited: bool = False
    config_error: bool = False

    @classmethod
    def success(cls, candidates: Sequence[LocationCandidate]) -> TierResult:
        return cls(TierOutcome.SUCCESS, tuple(candidates))

    @classmethod
    def no_data(cls, reason: str = "") -> TierResult:
        return cls(TierOutcome.NO_DATA, reason=reason)

    @classmethod
    def failure(cls, reason: str, rate_limited: bool = False, config_error: bool = False) -> TierResult:
        return cls(TierOutcome.FAILURE, reason=reason, rate_limited=rate_limited, config_error=config_error)


def dedupe_candidates(candidates: Sequence[LocationCandidate]) -> List[LocationCandidate]:
    """Keep the first candidate for each id, preserving order."""
    seen = set()
    unique: List[LocationCandidate] = []
    for candidate in candidates:
        if candidate.id in seen:
            continue
        seen.add(candidate.id)
        unique.append(candidate)
    return unique
