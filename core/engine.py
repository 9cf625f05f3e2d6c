#!/usr/bin/env python3
"""
Matching Engine - programmatic surface of the matching system.

Thin facade: loads entities through a unit of work, delegates to the
scorer, orchestrator, ranker, estimator and dispatchers, and persists match
history where asked.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, TextIO, Union

from core.batch.export import write_results_csv
from core.batch.models import BatchMatchResult, BatchRunStats, BulkMatchJob, GroupBy, MatchType
from core.batch.orchestrator import BatchMatchOrchestrator
from core.config_loader import AppConfig
from core.learning.weights import LearningWeightEstimator, LearningWeights
from core.ranker.service import (
    RankedRecommendation,
    RecommendationRanker,
    RecommendationStatistics,
    recommendation_statistics,
)
from core.scorer.models import CandidateProfile, JobPosting, MatchExplanation, MatchScore
from core.scorer.service import ScoreCalculator
from database.uow import matching_uow, UowFactory

logger = logging.getLogger(__name__)


class MatchingEngine:
    def __init__(
        self,
        config: AppConfig,
        score_calculator: ScoreCalculator,
        orchestrator: BatchMatchOrchestrator,
        ranker: RecommendationRanker,
        weight_estimator: LearningWeightEstimator,
        dispatcher=None,
        digest_service=None,
        task_runner=None,
        uow_factory: UowFactory = matching_uow,
    ):
        self.config = config
        self.score_calculator = score_calculator
        self.orchestrator = orchestrator
        self.ranker = ranker
        self.weight_estimator = weight_estimator
        self.dispatcher = dispatcher
        self.digest_service = digest_service
        self.task_runner = task_runner
        self.uow_factory = uow_factory

    # Scoring

    def score_one(self, candidate: CandidateProfile, job: JobPosting) -> MatchScore:
        """Score one pair. Never raises for oracle problems."""
        return self.score_calculator.score(candidate, job)

    def score_by_ids(self, candidate_id: str, job_id: str, persist: bool = True) -> MatchScore:
        """
        Load and score a stored pair; optionally append match history and
        update the application's match fields.

        Raises:
            CandidateNotFoundError, JobNotFoundError
        """
        with self.uow_factory() as repo:
            candidate = repo.get_candidate_profile(candidate_id)
            job = repo.get_job_posting(job_id)

        score = self.score_calculator.score(candidate, job)

        if persist:
            with self.uow_factory() as repo:
                repo.save_match(candidate.id, job.id, job.employer_id, score)
        return score

    def explain_match(self, candidate_id: str, job_id: str) -> MatchExplanation:
        with self.uow_factory() as repo:
            candidate = repo.get_candidate_profile(candidate_id)
            job = repo.get_job_posting(job_id)
        score = self.score_calculator.score(candidate, job)
        return self.score_calculator.explain(candidate, job, score)

    # Batch matching

    def batch_match(
        self,
        jobs: Optional[Sequence[Union[JobPosting, str]]] = None,
        candidates: Optional[Sequence[Union[CandidateProfile, str]]] = None,
        top_n: Optional[int] = None,
        min_score: Optional[int] = None,
        concurrency_limit: Optional[int] = None,
        group_by: GroupBy = GroupBy.JOB,
        persist: bool = True,
        stop_event: Optional[threading.Event] = None,
        stats: Optional[BatchRunStats] = None,
    ) -> List[BatchMatchResult]:
        """
        Match jobs x candidates. Ids are loaded from the database; None means
        every eligible job / every candidate. Run counters go into `stats`.
        """
        job_list, candidate_list = self._resolve(jobs, candidates)
        options = self._batch_options(top_n, min_score, concurrency_limit)

        if not persist:
            return self.orchestrator.batch_match(
                job_list, candidate_list, group_by=group_by, stop_event=stop_event, stats=stats, **options
            )

        with self.uow_factory() as repo:
            def store(candidate: CandidateProfile, job: JobPosting, score: MatchScore) -> None:
                repo.save_match(candidate.id, job.id, job.employer_id, score)

            return self.orchestrator.batch_match(
                job_list, candidate_list, group_by=group_by, stop_event=stop_event, on_scored=store,
                stats=stats, **options,
            )

    def run_bulk_match(
        self,
        match_type: MatchType,
        job_ids: Optional[List[str]] = None,
        candidate_ids: Optional[List[str]] = None,
        stop_event: Optional[threading.Event] = None,
        **options: Any,
    ) -> BulkMatchJob:
        """Tracked bulk match (candidates_to_job, jobs_to_candidate or all_to_all)."""
        if match_type == MatchType.CANDIDATES_TO_JOB and (not job_ids or len(job_ids) != 1):
            raise ValueError("candidates_to_job needs exactly one job id")
        if match_type == MatchType.JOBS_TO_CANDIDATE and (not candidate_ids or len(candidate_ids) != 1):
            raise ValueError("jobs_to_candidate needs exactly one candidate id")

        job_list, candidate_list = self._resolve(job_ids, candidate_ids)
        bulk_job = BulkMatchJob(
            match_type=match_type,
            job_ids=[j.id for j in job_list],
            candidate_ids=[c.id for c in candidate_list],
        )
        merged = self._batch_options(options.pop('top_n', None), options.pop('min_score', None),
                                     options.pop('concurrency_limit', None))
        return self.orchestrator.run_bulk_match(bulk_job, job_list, candidate_list, stop_event=stop_event, **merged)

    def _batch_options(self, top_n, min_score, concurrency_limit) -> Dict[str, int]:
        batch = self.config.batch
        return {
            'top_n': batch.top_n if top_n is None else top_n,
            'min_score': batch.min_score if min_score is None else min_score,
            'concurrency_limit': batch.concurrency_limit if concurrency_limit is None else concurrency_limit,
        }

    def _resolve(self, jobs, candidates):
        job_ids = None if jobs is None else [j for j in jobs if isinstance(j, str)]
        candidate_ids = None if candidates is None else [c for c in candidates if isinstance(c, str)]

        with self.uow_factory() as repo:
            if jobs is None:
                job_list = repo.get_job_postings()
            elif job_ids:
                loaded = {j.id: j for j in repo.get_job_postings(job_ids)}
                job_list = [loaded[j] if isinstance(j, str) else j for j in jobs]
            else:
                job_list = list(jobs)

            if candidates is None:
                candidate_list = repo.get_candidate_profiles()
            elif candidate_ids:
                loaded = {c.id: c for c in repo.get_candidate_profiles(candidate_ids)}
                candidate_list = [loaded[c] if isinstance(c, str) else c for c in candidates]
            else:
                candidate_list = list(candidates)
        return job_list, candidate_list

    def export_csv(self, results: Sequence[BatchMatchResult], stream: TextIO) -> int:
        return write_results_csv(results, stream)

    # Learning and recommendations

    def estimate_weights(self, user_id: str, lookback_days: Optional[int] = None) -> LearningWeights:
        return self.weight_estimator.estimate_weights(user_id, lookback_days)

    def recommend(
        self,
        job_id: str,
        candidate_ids: Optional[List[str]] = None,
        user_id: Optional[str] = None,
        min_score: Optional[int] = None,
        limit: Optional[int] = None,
        lookback_days: Optional[int] = None,
    ) -> List[RankedRecommendation]:
        """
        Rank candidates for a job with weights learned from the owner's history.

        Raises:
            JobNotFoundError, CandidateNotFoundError
        """
        rec_config = self.config.recommendation
        with self.uow_factory() as repo:
            job = repo.get_job_posting(job_id)
            pool = repo.get_candidate_profiles(candidate_ids)

        user_id = user_id or job.employer_id
        if user_id is None:
            weights = LearningWeights.default()
        else:
            weights = self.estimate_weights(
                user_id, rec_config.lookback_days if lookback_days is None else lookback_days
            )

        return self.ranker.recommend(
            job,
            pool,
            weights,
            user_id=user_id,
            min_score=rec_config.min_score if min_score is None else min_score,
            limit=rec_config.limit if limit is None else limit,
        )

    @staticmethod
    def recommendation_statistics(recommendations: Sequence[RankedRecommendation]) -> RecommendationStatistics:
        return recommendation_statistics(recommendations)

    def record_outcome(self, history_id: str, outcome: str) -> bool:
        with self.uow_factory() as repo:
            return repo.history.record_outcome(history_id, outcome) is not None

    # Notifications

    def _require_dispatcher(self):
        if self.dispatcher is None:
            raise RuntimeError("Notifications are disabled")
        return self.dispatcher

    def dispatch_for_new_job(self, job_id: str, background: bool = True):
        """
        Notify matching candidates about a new job. In background mode the
        task id is returned immediately.
        """
        dispatcher = self._require_dispatcher()
        if background and self.task_runner is not None:
            from notification.service import dispatch_new_job_task
            return self.task_runner.submit(dispatch_new_job_task, job_id, local=dispatcher.dispatch_for_new_job)
        return dispatcher.dispatch_for_new_job(job_id)

    def dispatch_for_new_candidate(self, candidate_id: str, background: bool = True):
        dispatcher = self._require_dispatcher()
        if background and self.task_runner is not None:
            from notification.service import dispatch_new_candidate_task
            return self.task_runner.submit(
                dispatch_new_candidate_task, candidate_id, local=dispatcher.dispatch_for_new_candidate
            )
        return dispatcher.dispatch_for_new_candidate(candidate_id)

    def run_digest(self, frequency: str) -> Dict[str, Any]:
        if self.digest_service is None:
            raise RuntimeError("Notifications are disabled")
        return self.digest_service.run_digest(frequency)
