#!/usr/bin/env python3
"""
Batch Match Orchestrator - score candidate x job cross-products.

Candidates are processed in fixed-size batches. Within a batch, pairs are
scored concurrently on a bounded thread pool; results are aggregated only
after every future of the batch has resolved. Failures of individual pairs
are logged and dropped without touching the rest of the run.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from core.batch.models import (
    BatchMatchEntry,
    BatchMatchResult,
    BatchRunStats,
    BulkMatchJob,
    BulkMatchStatus,
    GroupBy,
    MatchType,
)
from core.batch.telemetry import LoggingTelemetrySink, TelemetrySink
from core.errors import InputError, JobNotEligibleError
from core.scorer.models import CandidateProfile, JobPosting, MatchScore
from core.scorer.service import ScoreCalculator

logger = logging.getLogger(__name__)

ScoredPairHook = Callable[[CandidateProfile, JobPosting, MatchScore], None]


def _chunks(items: Sequence, size: int) -> Iterator[Sequence]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _top(entries: List[BatchMatchEntry], top_n: int) -> List[BatchMatchEntry]:
    # sorted() is stable: equal scores keep input order
    return sorted(entries, key=lambda e: e.score.overall, reverse=True)[:top_n]


class BatchMatchOrchestrator:
    """
    Runs batch matching over jobs x candidates.

    Args:
        score_calculator: Shared ScoreCalculator
        application_lookup: Object with get_existing_pairs(candidate_ids, job_ids)
            returning {(candidate_id, job_id)} pairs that already have an application
        telemetry: Sink for progress events (defaults to logging)
        batch_size: Candidates per batch
        concurrency_limit: Default max concurrent scoring calls
        high_quality_score: Threshold counted as a high quality match
    """

    def __init__(
        self,
        score_calculator: ScoreCalculator,
        application_lookup=None,
        telemetry: Optional[TelemetrySink] = None,
        batch_size: int = 100,
        concurrency_limit: int = 5,
        high_quality_score: int = 90,
    ):
        if batch_size < 1:
            raise InputError(f"batch_size must be >= 1, got {batch_size}")
        self.score_calculator = score_calculator
        self.application_lookup = application_lookup
        self.telemetry = telemetry or LoggingTelemetrySink()
        self.batch_size = batch_size
        self.concurrency_limit = concurrency_limit
        self.high_quality_score = high_quality_score

    def _existing_pairs(self, candidate_ids: List[str], job_ids: List[str]) -> Set[Tuple[str, str]]:
        if self.application_lookup is None:
            return set()
        return set(self.application_lookup.get_existing_pairs(candidate_ids, job_ids))

    @staticmethod
    def _validate(jobs: Sequence[JobPosting], top_n: int, min_score: int, concurrency_limit: int) -> None:
        for job in jobs:
            if not job.is_eligible:
                raise JobNotEligibleError(job.id, job.status)
        if top_n < 1:
            raise InputError(f"top_n must be >= 1, got {top_n}")
        if not 0 <= min_score <= 100:
            raise InputError(f"min_score must be within [0, 100], got {min_score}")
        if concurrency_limit < 1:
            raise InputError(f"concurrency_limit must be >= 1, got {concurrency_limit}")

    def batch_match(
        self,
        jobs: Sequence[JobPosting],
        candidates: Sequence[CandidateProfile],
        top_n: int = 10,
        min_score: int = 0,
        concurrency_limit: Optional[int] = None,
        group_by: GroupBy = GroupBy.JOB,
        stop_event: Optional[threading.Event] = None,
        on_scored: Optional[ScoredPairHook] = None,
        stats: Optional[BatchRunStats] = None,
    ) -> List[BatchMatchResult]:
        """
        Score every (candidate, job) pair without an existing application.

        Args:
            top_n: Maximum entries per result
            min_score: Entries below this overall are dropped
            concurrency_limit: Max concurrent scoring calls for this run
            group_by: Aggregate per job or per candidate
            stop_event: Checked between batches; a set event ends the run early
            on_scored: Called on the calling thread for each kept pair (e.g. to
                persist it); an exception drops that pair from the results
            stats: Filled with this run's counters; pass a fresh instance to
                read them back

        Returns:
            One BatchMatchResult per job (or candidate), in input order.

        Raises:
            InputError: If a job is not open/published or an option is out of range
        """
        limit = self.concurrency_limit if concurrency_limit is None else concurrency_limit
        self._validate(jobs, top_n, min_score, limit)

        if stats is None:
            stats = BatchRunStats()
        stats.jobs = len(jobs)
        stats.candidates = len(candidates)
        stats.batches_total = (len(candidates) + self.batch_size - 1) // self.batch_size
        subjects = jobs if group_by == GroupBy.JOB else candidates
        ranked: Dict[str, List[BatchMatchEntry]] = {s.id: [] for s in subjects}
        job_ids = [j.id for j in jobs]
        run_start = time.time()

        self.telemetry.emit(
            "batch_match.started",
            jobs=stats.jobs,
            candidates=stats.candidates,
            batches=stats.batches_total,
            concurrency_limit=limit,
        )

        if jobs and candidates:
            with ThreadPoolExecutor(max_workers=limit, thread_name_prefix="match-scorer") as executor:
                for batch_index, batch in enumerate(_chunks(list(candidates), self.batch_size)):
                    if stop_event is not None and stop_event.is_set():
                        stats.cancelled = True
                        logger.info(f"Batch match cancelled before batch {batch_index + 1}/{stats.batches_total}")
                        self.telemetry.emit("batch_match.cancelled", batch_index=batch_index)
                        break

                    self._run_batch(
                        executor, batch_index, batch, jobs, job_ids, ranked,
                        stats, min_score, top_n, group_by, on_scored,
                    )

        stats.elapsed_seconds = time.time() - run_start
        self.telemetry.emit("batch_match.completed", **stats.to_dict())
        logger.info(
            f"Batch match finished: {stats.pairs_scored} scored, {stats.matches_found} matches, "
            f"{stats.pairs_failed} failed, {stats.pairs_skipped_existing} skipped "
            f"in {stats.elapsed_seconds:.2f}s"
        )

        results = []
        for subject in subjects:
            entries = ranked[subject.id]
            for position, entry in enumerate(entries, start=1):
                entry.rank = position
            results.append(BatchMatchResult(group_by=group_by, subject_id=subject.id, entries=entries))
        return results

    def _run_batch(
        self,
        executor: ThreadPoolExecutor,
        batch_index: int,
        batch: Sequence[CandidateProfile],
        jobs: Sequence[JobPosting],
        job_ids: List[str],
        ranked: Dict[str, List[BatchMatchEntry]],
        stats: BatchRunStats,
        min_score: int,
        top_n: int,
        group_by: GroupBy,
        on_scored: Optional[ScoredPairHook],
    ) -> None:
        batch_start = time.time()
        pair_count = len(batch) * len(jobs)
        stats.pairs_considered += pair_count

        try:
            existing = self._existing_pairs([c.id for c in batch], job_ids)
        except Exception as e:
            # Without the dedup check no pair in this batch is safe to score
            logger.error(f"Application lookup failed for batch {batch_index + 1}: {e}")
            stats.pairs_failed += pair_count
            self.telemetry.emit("batch_match.batch_failed", batch_index=batch_index, error=str(e))
            return

        pairs = []
        for candidate in batch:
            for job in jobs:
                if (candidate.id, job.id) in existing:
                    stats.pairs_skipped_existing += 1
                    continue
                pairs.append((candidate, job))

        futures = [executor.submit(self.score_calculator.score, c, j) for c, j in pairs]
        wait(futures)

        new_entries: Dict[str, List[BatchMatchEntry]] = {}
        batch_failed = 0
        for (candidate, job), future in zip(pairs, futures):
            try:
                score = future.result()
            except Exception as e:
                batch_failed += 1
                logger.error(f"Scoring failed for candidate={candidate.id} job={job.id}: {e}")
                self.telemetry.emit(
                    "batch_match.pair_failed", candidate_id=candidate.id, job_id=job.id, error=str(e)
                )
                continue

            stats.pairs_scored += 1
            stats.score_sum += score.overall
            if score.is_fallback:
                stats.fallback_scores += 1
            if score.overall < min_score:
                continue

            if on_scored is not None:
                try:
                    on_scored(candidate, job, score)
                except Exception as e:
                    batch_failed += 1
                    logger.error(f"Persisting match failed for candidate={candidate.id} job={job.id}: {e}")
                    self.telemetry.emit(
                        "batch_match.pair_failed", candidate_id=candidate.id, job_id=job.id, error=str(e)
                    )
                    continue

            stats.matches_found += 1
            if score.overall >= self.high_quality_score:
                stats.high_quality_matches += 1
            key = job.id if group_by == GroupBy.JOB else candidate.id
            new_entries.setdefault(key, []).append(
                BatchMatchEntry(rank=0, candidate=candidate, job=job, score=score)
            )

        stats.pairs_failed += batch_failed
        for key, entries in new_entries.items():
            ranked[key] = _top(ranked[key] + entries, top_n)

        stats.batches_completed += 1
        self.telemetry.emit(
            "batch_match.batch_completed",
            batch_index=batch_index,
            pairs=len(pairs),
            failed=batch_failed,
            processed=stats.pairs_scored + stats.pairs_failed,
            matches_found=stats.matches_found,
            elapsed_seconds=round(time.time() - batch_start, 3),
        )

    def match_candidates_to_job(
        self, job: JobPosting, candidates: Sequence[CandidateProfile], **options
    ) -> BatchMatchResult:
        return self.batch_match([job], candidates, group_by=GroupBy.JOB, **options)[0]

    def match_jobs_to_candidate(
        self, candidate: CandidateProfile, jobs: Sequence[JobPosting], **options
    ) -> BatchMatchResult:
        return self.batch_match(jobs, [candidate], group_by=GroupBy.CANDIDATE, **options)[0]

    def run_bulk_match(
        self,
        bulk_job: BulkMatchJob,
        jobs: Sequence[JobPosting],
        candidates: Sequence[CandidateProfile],
        stop_event: Optional[threading.Event] = None,
        **options,
    ) -> BulkMatchJob:
        """
        Run a tracked bulk match and move it through its status lifecycle.

        Input errors mark the job failed and are re-raised.
        """
        group_by = GroupBy.CANDIDATE if bulk_job.match_type == MatchType.JOBS_TO_CANDIDATE else GroupBy.JOB
        bulk_job.status = BulkMatchStatus.PROCESSING
        bulk_job.started_at = datetime.now(timezone.utc)
        self.telemetry.emit("bulk_match.processing", bulk_job_id=bulk_job.id, match_type=bulk_job.match_type.value)

        stats = BatchRunStats()
        try:
            bulk_job.results = self.batch_match(
                jobs, candidates, group_by=group_by, stop_event=stop_event, stats=stats, **options
            )
        except Exception as e:
            bulk_job.status = BulkMatchStatus.FAILED
            bulk_job.error = str(e)
            bulk_job.completed_at = datetime.now(timezone.utc)
            bulk_job.stats = stats
            logger.error(f"Bulk match {bulk_job.id} failed: {e}")
            self.telemetry.emit("bulk_match.failed", bulk_job_id=bulk_job.id, error=str(e))
            raise

        bulk_job.stats = stats
        bulk_job.completed_at = datetime.now(timezone.utc)
        bulk_job.status = BulkMatchStatus.CANCELLED if stats.cancelled else BulkMatchStatus.COMPLETED
        self.telemetry.emit(
            f"bulk_match.{bulk_job.status.value}", bulk_job_id=bulk_job.id, **bulk_job.results_summary()
        )
        return bulk_job
