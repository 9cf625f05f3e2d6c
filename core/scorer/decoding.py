#!/usr/bin/env python3
"""
Oracle Response Decoding.

Raw oracle payloads are validated here and turned into either
ValidScore(MatchScore) or InvalidScore(reason). Nothing untyped crosses
into the rest of the scorer.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.scorer.models import (
    MatchBreakdown,
    MatchExplanation,
    MatchScore,
    ScoreSource,
    clamp_score,
    round_half_up,
)


class _OracleBreakdown(BaseModel):
    model_config = ConfigDict(extra='forbid', strict=True)

    strengths: List[str]
    concerns: List[str]
    recommendations: List[str]
    key_insights: List[str] = Field(alias='keyInsights')


class OracleMatchResponse(BaseModel):
    """Shape of a MATCH_ANALYSIS_SCHEMA response."""
    model_config = ConfigDict(extra='forbid', strict=True)

    overall: float = Field(alias='overallMatchScore', ge=0, le=100)
    skill: float = Field(alias='skillMatchScore', ge=0, le=100)
    experience: float = Field(alias='experienceMatchScore', ge=0, le=100)
    culture_fit: float = Field(alias='cultureFitScore', ge=0, le=100)
    wellbeing: float = Field(alias='wellbeingMatchScore', ge=0, le=100)
    work_setting: float = Field(alias='workSettingMatchScore', ge=0, le=100)
    salary_fit: float = Field(alias='salaryFitScore', ge=0, le=100)
    location_fit: float = Field(alias='locationFitScore', ge=0, le=100)
    career_growth: float = Field(alias='careerGrowthScore', ge=0, le=100)
    soft_skills: float = Field(alias='softSkillsScore', ge=0, le=100)
    breakdown: _OracleBreakdown = Field(alias='matchBreakdown')


class _StrengthArea(BaseModel):
    category: str
    score: float
    description: str


class _ImprovementArea(BaseModel):
    category: str
    gap: str
    suggestion: str


class OracleExplanationResponse(BaseModel):
    """Shape of a MATCH_EXPLANATION_SCHEMA response."""
    model_config = ConfigDict(extra='forbid')

    summary: str = Field(min_length=1)
    matched_skills: List[str] = Field(alias='matchedSkills')
    growth_opportunities: List[str] = Field(alias='growthOpportunities')
    culture_fit_highlights: List[str] = Field(alias='cultureFitHighlights')
    wellbeing_alignment: List[str] = Field(alias='wellbeingAlignment')
    recommendations: List[str]
    strength_areas: List[_StrengthArea] = Field(alias='strengthAreas')
    improvement_areas: List[_ImprovementArea] = Field(alias='improvementAreas')


@dataclass(frozen=True)
class ValidScore:
    score: MatchScore


@dataclass(frozen=True)
class InvalidScore:
    reason: str


DecodedScore = Union[ValidScore, InvalidScore]


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get('loc', ()))
    return f"{error.error_count()} schema error(s); first at '{location}': {first.get('msg')}"


def decode_match_response(payload: Any, recompute_overall: bool = True) -> DecodedScore:
    """
    Decode a raw oracle payload.

    Args:
        payload: Whatever the oracle returned
        recompute_overall: Replace the oracle's overall with the weighted
            combination of its sub-scores (the reported value is kept in
            breakdown.oracle_overall)
    """
    if not payload:
        return InvalidScore("empty payload")
    if not isinstance(payload, dict):
        return InvalidScore(f"expected an object, got {type(payload).__name__}")

    try:
        parsed = OracleMatchResponse.model_validate(payload)
    except ValidationError as e:
        return InvalidScore(_describe(e))

    dimensions = {
        'skill': round_half_up(parsed.skill),
        'experience': round_half_up(parsed.experience),
        'culture_fit': round_half_up(parsed.culture_fit),
        'wellbeing': round_half_up(parsed.wellbeing),
        'work_setting': round_half_up(parsed.work_setting),
        'salary_fit': round_half_up(parsed.salary_fit),
        'location_fit': round_half_up(parsed.location_fit),
        'career_growth': round_half_up(parsed.career_growth),
        'soft_skills': round_half_up(parsed.soft_skills),
    }
    oracle_overall = clamp_score(parsed.overall)
    breakdown = MatchBreakdown(
        strengths=parsed.breakdown.strengths,
        concerns=parsed.breakdown.concerns,
        recommendations=parsed.breakdown.recommendations,
        key_insights=parsed.breakdown.key_insights,
        oracle_overall=oracle_overall,
    )

    score = MatchScore.from_dimensions(dimensions, breakdown=breakdown, source=ScoreSource.ORACLE)
    if not recompute_overall:
        score = MatchScore(
            overall=oracle_overall,
            breakdown=breakdown,
            source=ScoreSource.ORACLE,
            **dimensions,
        )
    return ValidScore(score)


def decode_explanation_response(payload: Any) -> Optional[MatchExplanation]:
    """Decode an explanation payload; None when it does not match the schema."""
    if not isinstance(payload, dict) or not payload:
        return None
    try:
        parsed = OracleExplanationResponse.model_validate(payload)
    except ValidationError:
        return None

    return MatchExplanation(
        summary=parsed.summary,
        matched_skills=parsed.matched_skills,
        growth_opportunities=parsed.growth_opportunities,
        culture_fit_highlights=parsed.culture_fit_highlights,
        wellbeing_alignment=parsed.wellbeing_alignment,
        recommendations=parsed.recommendations,
        strength_areas=[
            {'category': a.category, 'score': clamp_score(a.score), 'description': a.description}
            for a in parsed.strength_areas
        ],
        improvement_areas=[a.model_dump() for a in parsed.improvement_areas],
        source=ScoreSource.ORACLE,
    )
