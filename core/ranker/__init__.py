"""Ranker Module - learned-weight candidate recommendations."""
from core.ranker.service import (
    RankedRecommendation,
    RecommendationRanker,
    RecommendationStatistics,
    recommendation_statistics,
)

__all__ = [
    'RankedRecommendation',
    'RecommendationRanker',
    'RecommendationStatistics',
    'recommendation_statistics',
]
