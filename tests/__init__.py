#!/usr/bin/env python3
"""
Test suite utilities.

All tests run without network access: the oracle, SMTP and Redis are mocked
and the database is a throwaway SQLite file per test.

    # Run all tests
    python -m pytest tests/ -v

    # Run one package
    python -m pytest tests/unit/notification -v
"""

from typing import Any, Dict, List, Optional

from core.scorer.models import CandidateProfile, JobPosting, MatchBreakdown, MatchScore, ScoreSource
from notification.channels import DeliveryResult, NotificationChannel


def make_candidate(candidate_id: str = "cand-1", **overrides) -> CandidateProfile:
    fields = {
        'name': "Ada Lovelace",
        'email': "ada@example.com",
        'skills': ["Python", "SQL", "React"],
        'years_of_experience': 6,
        'preferred_work_setting': "remote",
        'expected_salary': 100000,
        'location': "London",
    }
    fields.update(overrides)
    return CandidateProfile(id=candidate_id, **fields)


def make_job(job_id: str = "job-1", **overrides) -> JobPosting:
    fields = {
        'title': "Backend Engineer",
        'employer_id': "emp-1",
        'company_name': "Acme",
        'status': "open",
        'required_skills': ["python", "sql"],
        'work_setting': "remote",
        'salary_min': 80000,
        'salary_max': 120000,
        'location': "London",
    }
    fields.update(overrides)
    return JobPosting(id=job_id, **fields)


def make_score(overall: int = 80, source: ScoreSource = ScoreSource.ORACLE, **dimensions) -> MatchScore:
    """A MatchScore with every sub-dimension at `overall` unless overridden."""
    values = {name: overall for name in (
        'skill', 'experience', 'culture_fit', 'wellbeing', 'work_setting',
        'salary_fit', 'location_fit', 'career_growth', 'soft_skills',
    )}
    values.update(dimensions)
    return MatchScore(overall=overall, breakdown=MatchBreakdown(), source=source, **values)


def oracle_payload(**overrides) -> Dict[str, Any]:
    """A schema-valid MATCH_ANALYSIS_SCHEMA response."""
    payload = {
        'overallMatchScore': 85,
        'skillMatchScore': 90,
        'experienceMatchScore': 80,
        'cultureFitScore': 85,
        'wellbeingMatchScore': 75,
        'workSettingMatchScore': 100,
        'salaryFitScore': 90,
        'locationFitScore': 70,
        'careerGrowthScore': 60,
        'softSkillsScore': 80,
        'matchBreakdown': {
            'strengths': ["Strong Python"],
            'concerns': [],
            'recommendations': ["Apply"],
            'keyInsights': ["Good fit"],
        },
    }
    payload.update(overrides)
    return payload


class RecordingChannel(NotificationChannel):
    """Channel that keeps every message in memory instead of delivering it."""

    def __init__(self, fail: bool = False, channel: str = 'email'):
        super().__init__()
        self.sent: List[Dict[str, Any]] = []
        self.fail = fail
        self._channel = channel

    @property
    def channel_type(self) -> str:
        return self._channel

    def send(self, recipient, subject, html_body, text_body=None, metadata: Optional[Dict[str, Any]] = None):
        self.sent.append({'recipient': recipient, 'subject': subject, 'text': text_body, 'metadata': metadata})
        if self.fail:
            return DeliveryResult.failed("mailbox unavailable")
        return DeliveryResult(success=True, message_id=f"m-{len(self.sent)}")
