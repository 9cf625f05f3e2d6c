#!/usr/bin/env python3
"""
Batch Matching Models - results, run statistics and bulk match jobs.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from core.scorer.models import CandidateProfile, JobPosting, MatchScore


class MatchType(str, Enum):
    CANDIDATES_TO_JOB = "candidates_to_job"
    JOBS_TO_CANDIDATE = "jobs_to_candidate"
    ALL_TO_ALL = "all_to_all"


class GroupBy(str, Enum):
    JOB = "job"
    CANDIDATE = "candidate"


class BulkMatchStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class BatchMatchEntry:
    rank: int
    candidate: CandidateProfile
    job: JobPosting
    score: MatchScore


@dataclass
class BatchMatchResult:
    """Ranked matches for one job (group_by=job) or one candidate (group_by=candidate)."""
    group_by: GroupBy
    subject_id: str
    entries: List[BatchMatchEntry] = field(default_factory=list)

    @property
    def candidate_ids(self) -> List[str]:
        return [e.candidate.id for e in self.entries]

    @property
    def job_ids(self) -> List[str]:
        return [e.job.id for e in self.entries]


@dataclass
class BatchRunStats:
    """Per-run counters. Owned by a single run; never shared between runs."""
    jobs: int = 0
    candidates: int = 0
    batches_total: int = 0
    batches_completed: int = 0
    pairs_considered: int = 0
    pairs_skipped_existing: int = 0
    pairs_scored: int = 0
    pairs_failed: int = 0
    fallback_scores: int = 0
    matches_found: int = 0
    high_quality_matches: int = 0
    score_sum: int = 0
    cancelled: bool = False
    elapsed_seconds: float = 0.0

    @property
    def average_score(self) -> float:
        if not self.pairs_scored:
            return 0.0
        return round(self.score_sum / self.pairs_scored, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'jobs': self.jobs,
            'candidates': self.candidates,
            'batches_total': self.batches_total,
            'batches_completed': self.batches_completed,
            'pairs_considered': self.pairs_considered,
            'pairs_skipped_existing': self.pairs_skipped_existing,
            'pairs_scored': self.pairs_scored,
            'pairs_failed': self.pairs_failed,
            'fallback_scores': self.fallback_scores,
            'matches_found': self.matches_found,
            'high_quality_matches': self.high_quality_matches,
            'average_score': self.average_score,
            'cancelled': self.cancelled,
            'elapsed_seconds': round(self.elapsed_seconds, 3),
        }


@dataclass
class BulkMatchJob:
    """A tracked bulk matching request and its lifecycle."""
    match_type: MatchType
    job_ids: List[str] = field(default_factory=list)
    candidate_ids: List[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: BulkMatchStatus = BulkMatchStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    stats: Optional[BatchRunStats] = None
    results: List[BatchMatchResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.status in (BulkMatchStatus.COMPLETED, BulkMatchStatus.FAILED, BulkMatchStatus.CANCELLED)

    def results_summary(self) -> Dict[str, Any]:
        stats = self.stats or BatchRunStats()
        return {
            'total_processed': stats.pairs_scored + stats.pairs_failed,
            'successful_matches': stats.matches_found,
            'failed_items': stats.pairs_failed,
            'duration_seconds': round(stats.elapsed_seconds, 3),
            'average_match_score': stats.average_score,
            'high_quality_matches': stats.high_quality_matches,
        }
