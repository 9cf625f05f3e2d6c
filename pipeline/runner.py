"""Scheduled matching runs.

Shared by main.py and the RQ tasks: the nightly full batch, the hourly
incremental pass over new jobs and candidates, and the digests.
"""

import time
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from dataclasses import dataclass, field

from core.app_context import AppContext
from core.batch.models import BatchMatchResult, BatchRunStats, GroupBy
from core.errors import MatchingError
from database.uow import matching_uow


logger = logging.getLogger(__name__)


@dataclass
class MatchingPipelineResult:
    """Result of one scheduled run."""
    success: bool
    matches_count: int = 0
    saved_count: int = 0
    notified_count: int = 0
    error: Optional[str] = None
    execution_time: float = 0.0
    cancelled: bool = False
    stats: Dict = field(default_factory=dict)
    results: List[BatchMatchResult] = field(default_factory=list)


def _count_matches(results: List[BatchMatchResult]) -> int:
    return sum(len(r.entries) for r in results)


def run_full_batch(
    ctx: AppContext,
    stop_event: Optional[threading.Event] = None,
    status_callback: Optional[Callable[[str], None]] = None,
) -> MatchingPipelineResult:
    """Match every eligible job against every candidate and store the results.

    Args:
        ctx: Application context
        stop_event: Checked between batches; a set event ends the run early
        status_callback: Receives the current step name
    """
    if stop_event is None:
        stop_event = threading.Event()

    stats = BatchRunStats()
    pipeline_start = time.time()
    logger.info("=" * 60)
    logger.info("STARTING FULL BATCH MATCH")
    logger.info("=" * 60)

    try:
        if status_callback:
            status_callback("matching")
        results = ctx.engine.batch_match(stop_event=stop_event, stats=stats)
    except MatchingError as e:
        logger.error(f"Full batch match rejected: {e}")
        return MatchingPipelineResult(success=False, error=str(e), execution_time=time.time() - pipeline_start)
    except Exception as e:
        logger.exception("Error in full batch match")
        return MatchingPipelineResult(success=False, error=str(e), execution_time=time.time() - pipeline_start)

    execution_time = time.time() - pipeline_start
    matches_count = _count_matches(results)
    logger.info("=" * 60)
    logger.info(f"FULL BATCH MATCH COMPLETED in {execution_time:.2f}s: {matches_count} matches")
    logger.info("=" * 60)

    return MatchingPipelineResult(
        success=True,
        matches_count=matches_count,
        saved_count=matches_count,
        execution_time=execution_time,
        cancelled=stats.cancelled,
        stats=stats.to_dict(),
        results=results,
    )


def run_incremental(
    ctx: AppContext,
    lookback_hours: Optional[int] = None,
    stop_event: Optional[threading.Event] = None,
    now: Optional[datetime] = None,
) -> MatchingPipelineResult:
    """Process jobs and candidates created inside the lookback window.

    With notifications enabled every new job and candidate goes through the
    dispatcher (which also stores the matches); otherwise the new entities
    are batch matched against the existing pool.
    """
    if stop_event is None:
        stop_event = threading.Event()
    hours = ctx.config.schedule.incremental_lookback_hours if lookback_hours is None else lookback_hours
    since = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)

    pipeline_start = time.time()
    logger.info(f"=== INCREMENTAL MATCH: entities created since {since.isoformat()} ===")

    with matching_uow() as repo:
        job_ids = [j.id for j in repo.jobs.get_eligible_created_since(since)]
        candidate_ids = [c.id for c in repo.candidates.get_created_since(since)]

    logger.info(f"Found {len(job_ids)} new jobs and {len(candidate_ids)} new candidates")
    if not job_ids and not candidate_ids:
        return MatchingPipelineResult(success=True, execution_time=time.time() - pipeline_start)

    if ctx.engine.dispatcher is not None:
        return _incremental_dispatch(ctx, job_ids, candidate_ids, stop_event, pipeline_start)

    results: List[BatchMatchResult] = []
    try:
        if job_ids:
            results.extend(ctx.engine.batch_match(jobs=job_ids, stop_event=stop_event))
        if candidate_ids and not stop_event.is_set():
            results.extend(ctx.engine.batch_match(
                candidates=candidate_ids, group_by=GroupBy.CANDIDATE, stop_event=stop_event
            ))
    except Exception as e:
        logger.exception("Error in incremental match")
        return MatchingPipelineResult(success=False, error=str(e), execution_time=time.time() - pipeline_start)

    matches_count = _count_matches(results)
    return MatchingPipelineResult(
        success=True,
        matches_count=matches_count,
        saved_count=matches_count,
        execution_time=time.time() - pipeline_start,
        cancelled=stop_event.is_set(),
        results=results,
    )


def _incremental_dispatch(
    ctx: AppContext,
    job_ids: List[str],
    candidate_ids: List[str],
    stop_event: threading.Event,
    pipeline_start: float,
) -> MatchingPipelineResult:
    result = MatchingPipelineResult(success=True)
    errors = []

    dispatches = [(ctx.engine.dispatch_for_new_job, job_id) for job_id in job_ids]
    dispatches += [(ctx.engine.dispatch_for_new_candidate, candidate_id) for candidate_id in candidate_ids]

    for dispatch, subject_id in dispatches:
        if stop_event.is_set():
            logger.info("Incremental match interrupted")
            result.cancelled = True
            break
        try:
            outcome = dispatch(subject_id, background=False)
        except MatchingError as e:
            logger.warning(f"Skipping {subject_id}: {e}")
            errors.append(f"{subject_id}: {e}")
            continue
        result.matches_count += outcome.matches
        result.saved_count += outcome.matches
        result.notified_count += outcome.notifications_sent
        errors.extend(outcome.errors)

    if errors:
        result.error = "; ".join(errors)
    result.execution_time = time.time() - pipeline_start
    logger.info(
        f"Incremental match completed in {result.execution_time:.2f}s: "
        f"{result.matches_count} matches, {result.notified_count} notifications"
    )
    return result


def run_digest(ctx: AppContext, frequency: str) -> MatchingPipelineResult:
    pipeline_start = time.time()
    try:
        summary = ctx.engine.run_digest(frequency)
    except (MatchingError, RuntimeError) as e:
        logger.error(f"{frequency} digest not run: {e}")
        return MatchingPipelineResult(success=False, error=str(e), execution_time=time.time() - pipeline_start)

    return MatchingPipelineResult(
        success=not summary['errors'],
        matches_count=summary['total_matches'],
        notified_count=summary['total_sent'],
        error="; ".join(summary['errors']) or None,
        execution_time=time.time() - pipeline_start,
        stats=summary,
    )
