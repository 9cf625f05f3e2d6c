#!/usr/bin/env python3
"""
Score Calculator - entry point for scoring one candidate/job pair.

Oracle first, heuristic on any failure. score() does not raise for
oracle problems; only programming errors propagate.
"""

import logging
from typing import Any, Dict, Optional

from core.config_loader import ScoringConfig
from core.llm.interfaces import LLMProvider
from core.scorer.decoding import (
    InvalidScore,
    decode_explanation_response,
    decode_match_response,
)
from core.scorer.explanation import templated_explanation
from core.scorer.fallback import fallback_score
from core.scorer.models import (
    CandidateProfile,
    JobPosting,
    MatchExplanation,
    MatchScore,
)

logger = logging.getLogger(__name__)


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop empty values so the oracle only sees attributes that exist."""
    return {k: v for k, v in data.items() if v not in (None, "", [], {})}


def build_candidate_summary(candidate: CandidateProfile) -> Dict[str, Any]:
    return _compact({
        'skills': candidate.skills,
        'yearsOfExperience': candidate.years_of_experience,
        'education': candidate.education,
        'workPreferences': _compact({
            'teamSize': candidate.team_size,
            'managementStyle': candidate.management_style,
        }),
        'preferredWorkSetting': candidate.preferred_work_setting,
        'workLifeBalance': candidate.work_life_balance,
        'softSkills': candidate.soft_skills,
        'personalityTraits': candidate.personality_traits,
        'communicationStyle': candidate.communication_style,
        'careerGoals': candidate.career_goals,
        'learningStyle': candidate.learning_style,
        'professionalSummary': candidate.professional_summary,
        'expectedSalary': candidate.expected_salary,
        'desiredSalaryRange': _compact({
            'min': candidate.desired_salary_min,
            'max': candidate.desired_salary_max,
        }),
        'currentLocation': candidate.location,
        'willingToRelocate': candidate.willing_to_relocate,
        'industryExperience': candidate.industry_experience,
        'achievements': candidate.achievements,
    })


def build_job_summary(job: JobPosting) -> Dict[str, Any]:
    return _compact({
        'title': job.title,
        'requiredSkills': job.required_skills,
        'preferredSkills': job.preferred_skills,
        'description': job.enriched_description or job.description,
        'workSetting': job.work_setting,
        'employmentType': job.employment_type,
        'location': job.location,
        'salaryMin': job.salary_min,
        'salaryMax': job.salary_max,
        'companySize': job.company_size,
        'industry': job.industry,
        'teamStructure': job.team_structure,
        'careerGrowthOpportunities': job.career_growth_opportunities,
        'learningOpportunities': job.learning_opportunities,
    })


class ScoreCalculator:
    """
    Scores candidate/job pairs.

    Thread-safe as long as the oracle is: it holds no per-call state, so one
    instance is shared by all workers of a batch run.
    """

    def __init__(self, oracle: Optional[LLMProvider] = None, config: Optional[ScoringConfig] = None):
        self.oracle = oracle
        self.config = config or ScoringConfig()

    def build_request(self, candidate: CandidateProfile, job: JobPosting) -> Dict[str, Any]:
        return {
            'candidate': build_candidate_summary(candidate),
            'job': build_job_summary(job),
        }

    def score(self, candidate: CandidateProfile, job: JobPosting) -> MatchScore:
        if self.oracle is None or not self.config.use_oracle:
            return fallback_score(candidate, job)

        try:
            payload = self.oracle.score_match(self.build_request(candidate, job))
        except Exception as e:
            logger.warning(
                f"Oracle failed for candidate={candidate.id} job={job.id}, using heuristic scorer: {e}"
            )
            return fallback_score(candidate, job)

        decoded = decode_match_response(payload, recompute_overall=self.config.recompute_oracle_overall)
        if isinstance(decoded, InvalidScore):
            logger.warning(
                f"Invalid oracle response for candidate={candidate.id} job={job.id}: "
                f"{decoded.reason}. Using heuristic scorer."
            )
            return fallback_score(candidate, job)

        return decoded.score

    def explain(
        self,
        candidate: CandidateProfile,
        job: JobPosting,
        score: Optional[MatchScore] = None,
    ) -> MatchExplanation:
        """Explain a match; falls back to a templated explanation on any oracle problem."""
        if score is None:
            score = self.score(candidate, job)

        if self.oracle is None or not self.config.use_oracle:
            return templated_explanation(candidate, job, score)

        request = self.build_request(candidate, job)
        request['scores'] = score.to_dict()
        try:
            payload = self.oracle.explain_match(request)
        except Exception as e:
            logger.warning(f"Explanation failed for candidate={candidate.id} job={job.id}: {e}")
            return templated_explanation(candidate, job, score)

        explanation = decode_explanation_response(payload)
        if explanation is None:
            logger.warning(f"Invalid explanation payload for candidate={candidate.id} job={job.id}")
            return templated_explanation(candidate, job, score)
        return explanation
