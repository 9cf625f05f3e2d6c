#!/usr/bin/env python3
"""
Heuristic Scorer - Deterministic scoring used when the oracle is unavailable.

Pure functions of the two snapshots: no I/O, no clock, no randomness.
"""

from typing import List, Optional, Tuple

from core.scorer.models import (
    CandidateProfile,
    JobPosting,
    MatchBreakdown,
    MatchScore,
    ScoreSource,
    round_half_up,
)

NEUTRAL_SCORE = 70
NO_REQUIREMENTS_SKILL_SCORE = 50
WORK_SETTING_MISMATCH_SCORE = 50
BELOW_BAND_SALARY_SCORE = 90

FALLBACK_NOTICE = "Basic scoring - AI unavailable"


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def matched_required_skills(candidate_skills: List[str], required_skills: List[str]) -> List[str]:
    """Required skills covered by a candidate skill (case-insensitive substring, either direction)."""
    owned = [_normalize(s) for s in candidate_skills if _normalize(s)]
    matched = []
    for required in required_skills:
        req = _normalize(required)
        if not req:
            continue
        if any(req in skill or skill in req for skill in owned):
            matched.append(required)
    return matched


def skill_match_score(candidate_skills: List[str], required_skills: List[str]) -> Tuple[int, List[str]]:
    required = [s for s in required_skills if _normalize(s)]
    if not required:
        return NO_REQUIREMENTS_SKILL_SCORE, []
    matched = matched_required_skills(candidate_skills, required)
    return round_half_up(len(matched) / len(required) * 100), matched


def work_setting_score(preferred: Optional[str], offered: Optional[str]) -> int:
    if not _normalize(preferred) or not _normalize(offered):
        return NEUTRAL_SCORE
    if _normalize(preferred) == _normalize(offered):
        return 100
    return WORK_SETTING_MISMATCH_SCORE


def salary_fit_score(expected: Optional[int], job_min: Optional[int], job_max: Optional[int]) -> int:
    if not expected or not job_min or not job_max or expected <= 0:
        return NEUTRAL_SCORE
    if job_min <= expected <= job_max:
        return 100
    if expected < job_min:
        return BELOW_BAND_SALARY_SCORE
    gap = expected - job_max
    return max(0, round_half_up(100 - (gap / expected) * 100))


def fallback_score(candidate: CandidateProfile, job: JobPosting) -> MatchScore:
    """Score a pair without the oracle. overall always comes from the weighted formula."""
    skill, matched = skill_match_score(candidate.skills, job.required_skills)

    dimensions = {
        'skill': skill,
        'experience': NEUTRAL_SCORE,
        'culture_fit': NEUTRAL_SCORE,
        'wellbeing': NEUTRAL_SCORE,
        'work_setting': work_setting_score(candidate.preferred_work_setting, job.work_setting),
        'salary_fit': salary_fit_score(candidate.expected_salary, job.salary_min, job.salary_max),
        'location_fit': NEUTRAL_SCORE,
        'career_growth': NEUTRAL_SCORE,
        'soft_skills': NEUTRAL_SCORE,
    }

    strengths = [f"Matched skills: {', '.join(matched)}"] if matched else ["Skills assessment completed"]
    breakdown = MatchBreakdown(
        strengths=strengths,
        concerns=["Limited AI analysis available"],
        recommendations=[FALLBACK_NOTICE],
        key_insights=[f"Matched {len(matched)} of {len(job.required_skills)} required skills"],
    )
    return MatchScore.from_dimensions(dimensions, breakdown=breakdown, source=ScoreSource.FALLBACK)
