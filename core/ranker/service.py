#!/usr/bin/env python3
"""
Recommendation Ranker - re-rank a candidate pool for one job with learned weights.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

from core.learning.weights import (
    LearningWeights,
    WEIGHT_DIMENSIONS,
    is_successful,
    parse_outcome,
)
from core.scorer.models import CandidateProfile, JobPosting, MatchScore, round_half_up
from core.scorer.service import ScoreCalculator

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.7
MAX_CONFIDENCE = 0.95
HISTORY_CONFIDENCE_SPAN = 0.25

_DIMENSION_LABELS = {
    'skill': "skills",
    'culture': "culture fit",
    'wellbeing': "wellbeing compatibility",
    'experience': "experience",
}


@dataclass
class RankedRecommendation:
    candidate: CandidateProfile
    job_id: str
    recommendation_score: int
    confidence: float
    match_score: MatchScore
    explanation: str
    history_count: int = 0
    successful_history_count: int = 0
    last_outcome: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'candidate_id': self.candidate.id,
            'candidate_name': self.candidate.name,
            'job_id': self.job_id,
            'recommendation_score': self.recommendation_score,
            'confidence': self.confidence,
            'match_score': self.match_score.to_dict(),
            'explanation': self.explanation,
            'history_count': self.history_count,
            'successful_history_count': self.successful_history_count,
            'last_outcome': self.last_outcome,
        }


@dataclass
class RecommendationStatistics:
    total: int = 0
    average_score: float = 0.0
    average_confidence: float = 0.0
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def confidence_from_history(history: Sequence) -> float:
    """0.7 without history, rising towards 0.95 with the share of successful outcomes."""
    if not history:
        return BASE_CONFIDENCE
    successful = sum(1 for h in history if is_successful(h.outcome))
    confidence = min(MAX_CONFIDENCE, BASE_CONFIDENCE + (successful / len(history)) * HISTORY_CONFIDENCE_SPAN)
    return round(confidence, 2)


def weighted_recommendation_score(score: MatchScore, weights: LearningWeights) -> float:
    return sum(
        getattr(score, attr) * getattr(weights, name)
        for name, attr in WEIGHT_DIMENSIONS.items()
    )


def build_explanation(score: MatchScore, weights: LearningWeights, successful_history: int) -> str:
    """Name the two strongest weighted sub-dimensions, plus positive history if any."""
    ranked = sorted(
        WEIGHT_DIMENSIONS.items(),
        key=lambda item: getattr(score, item[1]) * getattr(weights, item[0]),
        reverse=True,
    )
    (first, first_attr), (second, second_attr) = ranked[0], ranked[1]
    reasons = [
        f"Strong {_DIMENSION_LABELS[first]} match ({getattr(score, first_attr)}/100)",
        f"Good {_DIMENSION_LABELS[second]} ({getattr(score, second_attr)}/100)",
    ]
    if successful_history > 0:
        plural = "s" if successful_history > 1 else ""
        reasons.append(f"Positive history: {successful_history} successful outcome{plural}")
    return ". ".join(reasons)


class RecommendationRanker:
    """
    Scores each candidate in the pool, applies learned weights, history
    confidence and the outcome bonus, and returns the best candidates.
    """

    def __init__(self, score_calculator: ScoreCalculator, history_repo=None, history_limit: int = 5):
        self.score_calculator = score_calculator
        self.history_repo = history_repo
        self.history_limit = history_limit

    def _candidate_history(self, candidate_id: str, user_id: Optional[str]) -> list:
        if self.history_repo is None or user_id is None:
            return []
        return list(self.history_repo.get_candidate_history(candidate_id, user_id, limit=self.history_limit))

    def recommend(
        self,
        job: JobPosting,
        candidate_pool: Sequence[CandidateProfile],
        weights: LearningWeights,
        user_id: Optional[str] = None,
        min_score: int = 60,
        limit: int = 10,
    ) -> List[RankedRecommendation]:
        """
        Rank candidate_pool for job.

        Args:
            user_id: Employer whose history drives confidence and outcome
                bonus; defaults to the job's employer
            min_score: Minimum recommendation_score to keep
            limit: Maximum recommendations returned

        Returns:
            Recommendations sorted by recommendation_score, highest first.
            Candidates that fail to score are skipped.
        """
        user_id = user_id or job.employer_id
        recommendations: List[RankedRecommendation] = []

        for candidate in candidate_pool:
            try:
                score = self.score_calculator.score(candidate, job)
                history = self._candidate_history(candidate.id, user_id)
            except Exception as e:
                logger.error(f"Skipping candidate {candidate.id} for job {job.id}: {e}")
                continue

            raw = weighted_recommendation_score(score, weights)
            last_outcome = parse_outcome(history[0].outcome) if history else None
            if last_outcome is not None:
                raw *= weights.bonus_for(last_outcome)

            final_score = round_half_up(raw)
            if final_score < min_score:
                continue

            successful = sum(1 for h in history if is_successful(h.outcome))
            recommendations.append(RankedRecommendation(
                candidate=candidate,
                job_id=job.id,
                recommendation_score=final_score,
                confidence=confidence_from_history(history),
                match_score=score,
                explanation=build_explanation(score, weights, successful),
                history_count=len(history),
                successful_history_count=successful,
                last_outcome=last_outcome.value if last_outcome else None,
            ))

        recommendations.sort(key=lambda r: r.recommendation_score, reverse=True)
        return recommendations[:limit]


def recommendation_statistics(recommendations: Sequence[RankedRecommendation]) -> RecommendationStatistics:
    """Confidence buckets: high >= 0.8, medium 0.6-0.8, low < 0.6."""
    if not recommendations:
        return RecommendationStatistics()

    total = len(recommendations)
    high = sum(1 for r in recommendations if r.confidence >= 0.8)
    medium = sum(1 for r in recommendations if 0.6 <= r.confidence < 0.8)
    low = total - high - medium
    return RecommendationStatistics(
        total=total,
        average_score=round(sum(r.recommendation_score for r in recommendations) / total, 2),
        average_confidence=round(sum(r.confidence for r in recommendations) / total, 2),
        high_confidence=high,
        medium_confidence=medium,
        low_confidence=low,
    )
