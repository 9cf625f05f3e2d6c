#!/usr/bin/env python3
"""
Learning Weights - derive ranking weights from hiring outcomes.

compute_learning_weights() is a pure function of the history snapshot.
LearningWeightEstimator only adds the repository lookup and the lookback
window around it.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    CONTACTED = "contacted"
    INTERVIEWED = "interviewed"
    OFFERED = "offered"
    HIRED = "hired"
    REJECTED = "rejected"


SUCCESSFUL_OUTCOMES = frozenset({Outcome.HIRED, Outcome.OFFERED, Outcome.INTERVIEWED})

DEFAULT_WEIGHTS: Dict[str, float] = {
    'skill': 0.35,
    'culture': 0.25,
    'wellbeing': 0.20,
    'experience': 0.20,
}

DEFAULT_OUTCOME_BONUS: Dict[str, float] = {
    Outcome.HIRED.value: 1.2,
    Outcome.OFFERED.value: 1.1,
    Outcome.INTERVIEWED.value: 1.05,
    Outcome.CONTACTED.value: 1.0,
    Outcome.REJECTED.value: 0.8,
}

# weight name -> MatchScore / history attribute
WEIGHT_DIMENSIONS: Dict[str, str] = {
    'skill': 'skill',
    'culture': 'culture_fit',
    'wellbeing': 'wellbeing',
    'experience': 'experience',
}

DEFAULT_LOOKBACK_DAYS = 90


def parse_outcome(value: Any) -> Optional[Outcome]:
    """Outcome enum from a stored value; None for pending or unknown outcomes."""
    if value is None or isinstance(value, Outcome):
        return value
    try:
        return Outcome(str(value).lower())
    except ValueError:
        return None


def is_successful(outcome: Any) -> bool:
    return parse_outcome(outcome) in SUCCESSFUL_OUTCOMES


@dataclass(frozen=True)
class LearningWeights:
    """Four non-negative weights summing to 1.0 plus the outcome bonus table."""
    skill: float
    culture: float
    wellbeing: float
    experience: float
    outcome_bonus: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_OUTCOME_BONUS))
    sample_size: int = 0
    successful_samples: int = 0

    @classmethod
    def default(cls, sample_size: int = 0) -> "LearningWeights":
        return cls(sample_size=sample_size, **DEFAULT_WEIGHTS)

    @property
    def is_default(self) -> bool:
        return self.successful_samples == 0

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in WEIGHT_DIMENSIONS}

    def bonus_for(self, outcome: Any) -> float:
        parsed = parse_outcome(outcome)
        if parsed is None:
            return 1.0
        return self.outcome_bonus.get(parsed.value, 1.0)


def compute_learning_weights(records: Iterable[Any]) -> LearningWeights:
    """
    Average the four sub-scores over successful outcomes and normalise.

    Records need `outcome`, `skill`, `culture_fit`, `wellbeing` and
    `experience` attributes (MatchHistory rows qualify). math.fsum keeps the
    result independent of record order.
    """
    records = list(records)
    successful = [r for r in records if is_successful(r.outcome)]

    if not successful:
        return LearningWeights.default(sample_size=len(records))

    averages = {
        name: math.fsum(float(getattr(r, attr) or 0) for r in successful) / len(successful)
        for name, attr in WEIGHT_DIMENSIONS.items()
    }
    total = math.fsum(averages.values())
    if total <= 0:
        return LearningWeights.default(sample_size=len(records))

    return LearningWeights(
        sample_size=len(records),
        successful_samples=len(successful),
        **{name: value / total for name, value in averages.items()},
    )


class LearningWeightEstimator:
    """
    Recomputes weights from the history store on every call; nothing is cached.
    """

    def __init__(
        self,
        history_repo,
        default_lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.history_repo = history_repo
        self.default_lookback_days = default_lookback_days
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def estimate_weights(self, user_id: str, lookback_days: Optional[int] = None) -> LearningWeights:
        days = self.default_lookback_days if lookback_days is None else lookback_days
        since = self._clock() - timedelta(days=days)

        records = self.history_repo.get_history_for_user(user_id, since)
        weights = compute_learning_weights(records)

        if weights.is_default:
            logger.info(
                f"No successful outcomes for user {user_id} in the last {days} days "
                f"({weights.sample_size} records); using default weights"
            )
        else:
            logger.info(
                f"Learned weights for user {user_id} from {weights.successful_samples} "
                f"successful outcomes: {weights.as_dict()}"
            )
        return weights
