#!/usr/bin/env python3
"""
Scoring Models - Data structures for candidate/job matching.

CandidateProfile and JobPosting are read-only snapshots handed to the
scorer. MatchScore is the value object every scoring path produces.
"""

import math
from enum import Enum
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field


# Sub-dimensions of a MatchScore, in oracle schema order.
DIMENSIONS = (
    'skill',
    'experience',
    'culture_fit',
    'wellbeing',
    'work_setting',
    'salary_fit',
    'location_fit',
    'career_growth',
    'soft_skills',
)

# Canonical weighting for overall; sums to 1.0.
OVERALL_WEIGHTS: Dict[str, float] = {
    'skill': 0.30,
    'experience': 0.15,
    'culture_fit': 0.15,
    'wellbeing': 0.10,
    'work_setting': 0.10,
    'salary_fit': 0.10,
    'location_fit': 0.05,
    'career_growth': 0.03,
    'soft_skills': 0.02,
}

MIN_SCORE = 0
MAX_SCORE = 100


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (Python's round() is banker's)."""
    return int(math.floor(value + 0.5 + 1e-9))


def clamp_score(value: float) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, round_half_up(value)))


def weighted_overall(dimensions: Dict[str, int]) -> int:
    """Combine the nine sub-dimensions into overall using OVERALL_WEIGHTS."""
    total = math.fsum(dimensions[name] * weight for name, weight in OVERALL_WEIGHTS.items())
    return clamp_score(total)


class ScoreSource(str, Enum):
    ORACLE = "oracle"
    FALLBACK = "fallback"


class JobStatus(str, Enum):
    DRAFT = "draft"
    OPEN = "open"
    PUBLISHED = "published"
    CLOSED = "closed"


ELIGIBLE_JOB_STATUSES = frozenset({JobStatus.OPEN.value, JobStatus.PUBLISHED.value})


@dataclass
class MatchBreakdown:
    """Free-form reasoning attached to a score."""
    strengths: List[str] = field(default_factory=list)
    concerns: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    key_insights: List[str] = field(default_factory=list)
    # Overall as reported by the oracle before recomputation
    oracle_overall: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'strengths': list(self.strengths),
            'concerns': list(self.concerns),
            'recommendations': list(self.recommendations),
            'key_insights': list(self.key_insights),
        }
        if self.oracle_overall is not None:
            data['oracle_overall'] = self.oracle_overall
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MatchBreakdown":
        data = data or {}
        return cls(
            strengths=list(data.get('strengths') or []),
            concerns=list(data.get('concerns') or []),
            recommendations=list(data.get('recommendations') or []),
            key_insights=list(data.get('key_insights') or []),
            oracle_overall=data.get('oracle_overall'),
        )


@dataclass(frozen=True)
class MatchScore:
    """Ten bounded integer dimensions plus breakdown. Build via from_dimensions()."""
    overall: int
    skill: int
    experience: int
    culture_fit: int
    wellbeing: int
    work_setting: int
    salary_fit: int
    location_fit: int
    career_growth: int
    soft_skills: int
    breakdown: MatchBreakdown = field(default_factory=MatchBreakdown, compare=False)
    source: ScoreSource = ScoreSource.ORACLE

    def __post_init__(self):
        for name in ('overall',) + DIMENSIONS:
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f"{name} must be an int, got {type(value).__name__}")
            if not MIN_SCORE <= value <= MAX_SCORE:
                raise ValueError(f"{name}={value} outside [{MIN_SCORE}, {MAX_SCORE}]")

    @classmethod
    def from_dimensions(
        cls,
        dimensions: Dict[str, int],
        breakdown: Optional[MatchBreakdown] = None,
        source: ScoreSource = ScoreSource.ORACLE,
    ) -> "MatchScore":
        values = {name: clamp_score(dimensions[name]) for name in DIMENSIONS}
        return cls(
            overall=weighted_overall(values),
            breakdown=breakdown or MatchBreakdown(),
            source=source,
            **values,
        )

    @property
    def is_fallback(self) -> bool:
        return self.source == ScoreSource.FALLBACK

    def dimensions(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in DIMENSIONS}

    def to_dict(self) -> Dict[str, Any]:
        data = {'overall': self.overall}
        data.update(self.dimensions())
        data['breakdown'] = self.breakdown.to_dict()
        data['source'] = self.source.value
        return data


@dataclass
class CandidateProfile:
    """Matching-relevant snapshot of a candidate."""
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    skills: List[str] = field(default_factory=list)
    years_of_experience: Optional[float] = None
    education: List[Dict[str, Any]] = field(default_factory=list)

    preferred_work_setting: Optional[str] = None
    team_size: Optional[str] = None
    management_style: Optional[str] = None
    work_life_balance: Optional[str] = None

    expected_salary: Optional[int] = None
    desired_salary_min: Optional[int] = None
    desired_salary_max: Optional[int] = None
    location: Optional[str] = None
    willing_to_relocate: bool = False

    # AI-inferred attributes, stored on the profile by resume parsing
    soft_skills: List[str] = field(default_factory=list)
    personality_traits: List[str] = field(default_factory=list)
    communication_style: Optional[str] = None
    career_goals: Optional[str] = None
    learning_style: Optional[str] = None
    professional_summary: Optional[str] = None
    industry_experience: List[str] = field(default_factory=list)
    achievements: List[str] = field(default_factory=list)


@dataclass
class JobPosting:
    """Matching-relevant snapshot of a job."""
    id: str
    title: str
    employer_id: Optional[str] = None
    company_name: Optional[str] = None
    status: str = JobStatus.OPEN.value

    required_skills: List[str] = field(default_factory=list)
    preferred_skills: List[str] = field(default_factory=list)
    description: Optional[str] = None
    enriched_description: Optional[str] = None

    work_setting: Optional[str] = None
    employment_type: Optional[str] = None
    location: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None

    company_size: Optional[str] = None
    industry: Optional[str] = None
    team_structure: Optional[str] = None
    career_growth_opportunities: Optional[str] = None
    learning_opportunities: Optional[str] = None

    @property
    def is_eligible(self) -> bool:
        return self.status in ELIGIBLE_JOB_STATUSES


@dataclass
class MatchExplanation:
    """Human-readable explanation of a MatchScore."""
    summary: str
    matched_skills: List[str] = field(default_factory=list)
    growth_opportunities: List[str] = field(default_factory=list)
    culture_fit_highlights: List[str] = field(default_factory=list)
    wellbeing_alignment: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    strength_areas: List[Dict[str, Any]] = field(default_factory=list)
    improvement_areas: List[Dict[str, Any]] = field(default_factory=list)
    source: ScoreSource = ScoreSource.ORACLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'summary': self.summary,
            'matched_skills': list(self.matched_skills),
            'growth_opportunities': list(self.growth_opportunities),
            'culture_fit_highlights': list(self.culture_fit_highlights),
            'wellbeing_alignment': list(self.wellbeing_alignment),
            'recommendations': list(self.recommendations),
            'strength_areas': list(self.strength_areas),
            'improvement_areas': list(self.improvement_areas),
            'source': self.source.value,
        }
