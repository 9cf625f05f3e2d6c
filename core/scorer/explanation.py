#!/usr/bin/env python3
"""
Templated Explanations - numeric-only explanation used when the oracle
cannot explain a match.
"""

from typing import List

from core.scorer.fallback import matched_required_skills
from core.scorer.models import (
    CandidateProfile,
    JobPosting,
    MatchExplanation,
    MatchScore,
    ScoreSource,
)

STRENGTH_THRESHOLD = 75
IMPROVEMENT_THRESHOLD = 60

_LABELS = {
    'skill': "Skills",
    'experience': "Experience",
    'culture_fit': "Culture Fit",
    'wellbeing': "Wellbeing",
    'work_setting': "Work Setting",
    'salary_fit': "Salary",
    'location_fit': "Location",
    'career_growth': "Career Growth",
    'soft_skills': "Soft Skills",
}

_SUGGESTIONS = {
    'skill': "Build hands-on experience with the required skills you are missing",
    'experience': "Highlight projects that show experience comparable to the role",
    'culture_fit': "Learn more about the team and how it works before applying",
    'wellbeing': "Ask about working hours and support policies during interviews",
    'work_setting': "Confirm whether the work arrangement can be adjusted",
    'salary_fit': "Review the salary band against your expectations",
    'location_fit': "Check relocation or remote options for this role",
    'career_growth': "Ask about progression paths and learning budgets",
    'soft_skills': "Prepare examples that demonstrate collaboration and communication",
}


def templated_explanation(
    candidate: CandidateProfile,
    job: JobPosting,
    score: MatchScore,
) -> MatchExplanation:
    """Build an explanation from the numbers alone. Never raises for valid scores."""
    dimensions = score.dimensions()

    strength_areas = [
        {
            'category': _LABELS[name],
            'score': value,
            'description': f"Your {_LABELS[name].lower()} align well with this role",
        }
        for name, value in sorted(dimensions.items(), key=lambda item: -item[1])
        if value >= STRENGTH_THRESHOLD
    ]
    improvement_areas = [
        {
            'category': _LABELS[name],
            'gap': f"{_LABELS[name]} scored {value}/100",
            'suggestion': _SUGGESTIONS[name],
        }
        for name, value in sorted(dimensions.items(), key=lambda item: item[1])
        if value < IMPROVEMENT_THRESHOLD
    ]

    recommendations: List[str] = [
        r for r in score.breakdown.recommendations if r
    ] or [
        "Review the job requirements carefully",
        "Highlight relevant experience in your application",
    ]

    growth = [job.career_growth_opportunities] if job.career_growth_opportunities else [
        "Professional development opportunities",
        "Skill advancement",
    ]

    return MatchExplanation(
        summary=(
            f"You have a {score.overall}% match with this role "
            f"based on your skills and experience."
        ),
        matched_skills=matched_required_skills(candidate.skills, job.required_skills),
        growth_opportunities=growth,
        culture_fit_highlights=["Team collaboration", "Work environment"],
        wellbeing_alignment=["Work-life balance considerations"],
        recommendations=recommendations,
        strength_areas=strength_areas,
        improvement_areas=improvement_areas,
        source=ScoreSource.FALLBACK,
    )
