#!/usr/bin/env python3
"""
Scoring Module - candidate/job compatibility scores.

Public API:
- ScoreCalculator: oracle-first scorer with heuristic fallback
- MatchScore, CandidateProfile, JobPosting, MatchExplanation: data structures

Layout:
- models.py: Data structures and the canonical overall weighting
- fallback.py: Deterministic heuristic scorer
- decoding.py: Oracle payload validation (ValidScore | InvalidScore)
- explanation.py: Templated explanations
- service.py: ScoreCalculator
"""

from core.scorer.models import (
    CandidateProfile,
    JobPosting,
    MatchBreakdown,
    MatchExplanation,
    MatchScore,
    ScoreSource,
)
from core.scorer.service import ScoreCalculator

__all__ = [
    'ScoreCalculator',
    'MatchScore',
    'MatchBreakdown',
    'MatchExplanation',
    'CandidateProfile',
    'JobPosting',
    'ScoreSource',
]
