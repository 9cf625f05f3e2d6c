#!/usr/bin/env python3
"""
Match Notification Service

Fans match results out to candidates and employers:

- dispatch_for_new_job: a newly opened job is scored against every eligible
  candidate; each candidate at or above the threshold receives one email.
- dispatch_for_new_candidate: a new candidate is scored against every open
  job; each owning employer receives one summary of its top matches.

Each dispatch walks created -> scoring -> filtered -> dispatched. Pairs are
claimed through NotificationTrackerService before sending so repeated or
concurrent dispatches never notify the same pair twice.

Dispatch is detached from the triggering request by BackgroundTaskRunner,
which enqueues onto Redis Queue when available and otherwise runs tasks on a
bounded thread pool. Either way each task is tracked by id.
"""

import logging
import threading
import uuid
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from redis import Redis
from rq import Queue, Retry
from rq.exceptions import NoSuchJobError
from rq.job import Job as RQJob

from core.batch.orchestrator import BatchMatchOrchestrator
from core.batch.models import BatchMatchEntry, BatchRunStats
from core.batch.telemetry import LoggingTelemetrySink, TelemetrySink
from core.config_loader import NotificationConfig
from core.errors import JobNotEligibleError
from core.scorer.fallback import matched_required_skills
from core.scorer.models import CandidateProfile, JobPosting, MatchScore
from database.uow import matching_uow, UowFactory
from notification.channels import DeliveryResult, NotificationChannel, mask_email
from notification.message_builder import (
    CandidateMatchEntry,
    EmployerSummaryContent,
    JobMatchContent,
    NotificationMessageBuilder,
    RenderedMessage,
)
from notification.tracker import (
    EVENT_NEW_CANDIDATE_MATCH,
    EVENT_NEW_JOB_MATCH,
    NotificationTrackerService,
)

logger = logging.getLogger(__name__)

TOP_SKILLS_IN_MESSAGE = 5
RQ_RESULT_TTL = 86400


class DispatchState(str, Enum):
    CREATED = "created"
    SCORING = "scoring"
    FILTERED = "filtered"
    DISPATCHED = "dispatched"


@dataclass
class DispatchResult:
    event_type: str
    subject_id: str
    state: DispatchState = DispatchState.CREATED
    pairs_scored: int = 0
    matches: int = 0
    notifications_sent: int = 0
    duplicates_skipped: int = 0
    skipped_no_recipient: int = 0
    failures: int = 0
    tracking_ids: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_type': self.event_type,
            'subject_id': self.subject_id,
            'state': self.state.value,
            'pairs_scored': self.pairs_scored,
            'matches': self.matches,
            'notifications_sent': self.notifications_sent,
            'duplicates_skipped': self.duplicates_skipped,
            'skipped_no_recipient': self.skipped_no_recipient,
            'failures': self.failures,
            'tracking_ids': list(self.tracking_ids),
            'errors': list(self.errors),
        }


def _growth_opportunities(job: JobPosting) -> List[str]:
    return [g for g in (job.career_growth_opportunities, job.learning_opportunities) if g]


def _entry_for(candidate: CandidateProfile, job: JobPosting, score: MatchScore) -> CandidateMatchEntry:
    return CandidateMatchEntry(
        candidate_id=candidate.id,
        candidate_name=candidate.name,
        candidate_email=candidate.email,
        job_id=job.id,
        job_title=job.title,
        overall=score.overall,
        skill=score.skill,
        culture_fit=score.culture_fit,
        wellbeing=score.wellbeing,
        top_skills=list(candidate.skills[:TOP_SKILLS_IN_MESSAGE]),
        years_of_experience=candidate.years_of_experience,
        location=candidate.location,
    )


class MatchNotificationDispatcher:
    """
    Computes matches for a creation event and notifies the interested party.

    Args:
        orchestrator: Scores the new entity against its counterparts; its
            application lookup provides the existing-application dedup
        channel: Transport for rendered messages
        message_builder: Renders payloads to subject/HTML/text
        uow_factory: Opens a MatchingRepository unit of work
        config: Thresholds and recipient settings
        telemetry: Sink for state transitions and delivery outcomes
    """

    def __init__(
        self,
        orchestrator: BatchMatchOrchestrator,
        channel: NotificationChannel,
        message_builder: Optional[NotificationMessageBuilder] = None,
        uow_factory: UowFactory = matching_uow,
        config: Optional[NotificationConfig] = None,
        telemetry: Optional[TelemetrySink] = None,
    ):
        self.orchestrator = orchestrator
        self.channel = channel
        self.config = config or NotificationConfig()
        self.message_builder = message_builder or NotificationMessageBuilder(self.config.base_url)
        self.uow_factory = uow_factory
        self.telemetry = telemetry or LoggingTelemetrySink(level=logging.DEBUG)

    def _transition(self, result: DispatchResult, state: DispatchState) -> None:
        result.state = state
        self.telemetry.emit(
            "dispatch.state", event_type=result.event_type, subject_id=result.subject_id, state=state.value
        )

    def _recipient(self, address: Optional[str]) -> Optional[str]:
        if self.channel.channel_type == 'webhook':
            return self.config.webhook_url
        return address

    def _score_and_store(self, result: DispatchResult, run_match: Callable[..., Any]) -> List[BatchMatchEntry]:
        """
        Run the match, appending a history row for every kept pair.

        run_match receives the on_scored hook and this run's stats, and
        returns a BatchMatchResult.
        """
        self._transition(result, DispatchState.SCORING)
        with self.uow_factory() as repo:
            def store(candidate: CandidateProfile, job: JobPosting, score: MatchScore) -> None:
                repo.save_match(candidate.id, job.id, job.employer_id, score)

            stats = BatchRunStats()
            batch_result = run_match(store, stats)
        result.pairs_scored = stats.pairs_scored
        result.failures += stats.pairs_failed
        return batch_result.entries

    def _deliver(
        self,
        claimed_ids: List[str],
        recipient: str,
        message: RenderedMessage,
        metadata: Dict[str, Any],
        result: DispatchResult,
    ) -> bool:
        try:
            delivery = self.channel.send(recipient, message.subject, message.html, message.text, metadata)
        except Exception as e:
            logger.error(f"Channel {self.channel.channel_type} raised for {mask_email(recipient)}: {e}")
            delivery = DeliveryResult.failed(str(e))

        with self.uow_factory() as repo:
            NotificationTrackerService(repo).mark_result(claimed_ids, delivery)

        if delivery.success:
            result.notifications_sent += 1
        else:
            result.failures += 1
            result.errors.append(f"{mask_email(recipient)}: {delivery.error}")
        self.telemetry.emit(
            "dispatch.delivery",
            event_type=result.event_type,
            subject_id=result.subject_id,
            success=delivery.success,
            pairs=len(claimed_ids),
        )
        return delivery.success

    def dispatch_for_new_job(self, job_id: str) -> DispatchResult:
        """
        Notify every candidate scoring >= new_job_min_score against a new job.

        Raises:
            JobNotFoundError: Unknown job id
            JobNotEligibleError: Job is not open/published
        """
        result = DispatchResult(event_type=EVENT_NEW_JOB_MATCH, subject_id=job_id)
        self._transition(result, DispatchState.CREATED)

        with self.uow_factory() as repo:
            job = repo.get_job_posting(job_id)
            if not job.is_eligible:
                raise JobNotEligibleError(job.id, job.status)
            candidates = repo.get_candidate_profiles()

        entries = []
        if candidates:
            entries = self._score_and_store(result, lambda store, stats: self.orchestrator.match_candidates_to_job(
                job, candidates,
                top_n=len(candidates),
                min_score=self.config.new_job_min_score,
                on_scored=store,
                stats=stats,
            ))

        result.matches = len(entries)
        self._transition(result, DispatchState.FILTERED)

        for entry in entries:
            try:
                self._notify_candidate(job, entry, result)
            except Exception as e:
                result.failures += 1
                result.errors.append(f"candidate {entry.candidate.id}: {e}")
                logger.error(f"Failed to notify candidate {entry.candidate.id} about job {job.id}: {e}")

        self._transition(result, DispatchState.DISPATCHED)
        logger.info(
            f"New job {job_id}: {result.matches} matches, {result.notifications_sent} notified, "
            f"{result.duplicates_skipped} duplicates, {result.failures} failures"
        )
        return result

    def _notify_candidate(self, job: JobPosting, entry: BatchMatchEntry, result: DispatchResult) -> None:
        candidate = entry.candidate
        recipient = self._recipient(candidate.email)
        if not recipient:
            result.skipped_no_recipient += 1
            logger.warning(f"Candidate {candidate.id} has no recipient address; skipping")
            return

        content = JobMatchContent(
            candidate_id=candidate.id,
            candidate_name=candidate.name,
            job_id=job.id,
            job_title=job.title,
            company_name=job.company_name,
            location=job.location,
            work_setting=job.work_setting,
            score=entry.score.overall,
            top_matched_skills=matched_required_skills(candidate.skills, job.required_skills)[:TOP_SKILLS_IN_MESSAGE],
            growth_opportunities=_growth_opportunities(job),
        )

        with self.uow_factory() as repo:
            tracker = NotificationTrackerService(repo)
            tracking_id = tracker.generate_tracking_id()
            message = self.message_builder.job_match(content, tracking_id)
            record = tracker.claim(
                candidate_id=candidate.id,
                job_id=job.id,
                event_type=EVENT_NEW_JOB_MATCH,
                recipient=recipient,
                tracking_id=tracking_id,
                recipient_id=candidate.id,
                channel_type=self.channel.channel_type,
                subject=message.subject,
                event_data={'score': entry.score.overall},
            )
            claimed_id = record.id if record is not None else None

        if claimed_id is None:
            result.duplicates_skipped += 1
            return

        result.tracking_ids.append(tracking_id)
        self._deliver([claimed_id], recipient, message, {'tracking_id': tracking_id, 'job_id': job.id}, result)

    def dispatch_for_new_candidate(self, candidate_id: str) -> DispatchResult:
        """
        Send each employer one summary of its jobs matching a new candidate.

        Only jobs scoring >= new_candidate_min_score are included, top
        new_candidate_top_n per employer.

        Raises:
            CandidateNotFoundError: Unknown candidate id
        """
        result = DispatchResult(event_type=EVENT_NEW_CANDIDATE_MATCH, subject_id=candidate_id)
        self._transition(result, DispatchState.CREATED)

        with self.uow_factory() as repo:
            candidate = repo.get_candidate_profile(candidate_id)
            jobs = repo.get_job_postings()

        entries = []
        if jobs:
            entries = self._score_and_store(result, lambda store, stats: self.orchestrator.match_jobs_to_candidate(
                candidate, jobs,
                top_n=len(jobs),
                min_score=self.config.new_candidate_min_score,
                on_scored=store,
                stats=stats,
            ))

        result.matches = len(entries)
        by_employer: Dict[str, List[BatchMatchEntry]] = {}
        for entry in entries:
            if entry.job.employer_id is None:
                continue
            by_employer.setdefault(entry.job.employer_id, []).append(entry)
        self._transition(result, DispatchState.FILTERED)

        for employer_id, employer_entries in by_employer.items():
            try:
                self._notify_employer(employer_id, candidate, employer_entries[:self.config.new_candidate_top_n], result)
            except Exception as e:
                result.failures += 1
                result.errors.append(f"employer {employer_id}: {e}")
                logger.error(f"Failed to notify employer {employer_id} about candidate {candidate.id}: {e}")

        self._transition(result, DispatchState.DISPATCHED)
        logger.info(
            f"New candidate {candidate_id}: {result.matches} matches across {len(by_employer)} employers, "
            f"{result.notifications_sent} summaries sent, {result.failures} failures"
        )
        return result

    def _notify_employer(
        self,
        employer_id: str,
        candidate: CandidateProfile,
        entries: List[BatchMatchEntry],
        result: DispatchResult,
    ) -> None:
        with self.uow_factory() as repo:
            employer = repo.employers.get_by_id(employer_id)
            if employer is None or not employer.notifications_enabled:
                logger.info(f"Employer {employer_id} has notifications disabled; skipping")
                return
            recipient = self._recipient(employer.email)
            if not recipient:
                result.skipped_no_recipient += 1
                logger.warning(f"Employer {employer_id} has no recipient address; skipping")
                return

            tracker = NotificationTrackerService(repo)
            tracking_id = tracker.generate_tracking_id()
            claimed_ids = []
            claimed_entries = []
            for entry in entries:
                record = tracker.claim(
                    candidate_id=candidate.id,
                    job_id=entry.job.id,
                    event_type=EVENT_NEW_CANDIDATE_MATCH,
                    recipient=recipient,
                    tracking_id=tracking_id,
                    recipient_id=employer_id,
                    channel_type=self.channel.channel_type,
                    event_data={'score': entry.score.overall},
                )
                if record is None:
                    result.duplicates_skipped += 1
                    continue
                claimed_ids.append(record.id)
                claimed_entries.append(entry)

            if not claimed_entries:
                return

            content = EmployerSummaryContent(
                employer_id=employer_id,
                employer_name=employer.company_name or employer.name,
                candidate_id=candidate.id,
                candidate_name=candidate.name,
                matches=[_entry_for(candidate, e.job, e.score) for e in claimed_entries],
            )
            message = self.message_builder.employer_summary(content, tracking_id)

        result.tracking_ids.append(tracking_id)
        self._deliver(claimed_ids, recipient, message, {'tracking_id': tracking_id, 'candidate_id': candidate.id}, result)


class TaskStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"


@dataclass
class TrackedTask:
    id: str
    name: str
    backend: str
    status: TaskStatus = TaskStatus.QUEUED
    error: Optional[str] = None
    result: Any = None


class BackgroundTaskRunner:
    """
    Runs detached work on Redis Queue, or a local thread pool without Redis.

    Tasks submitted to RQ must be module-level functions with serialisable
    arguments. In thread mode the optional `local` callable runs instead, so
    in-process services can be reused without rebuilding them.

    At most max_tracked_tasks are remembered; the oldest settled tasks are
    forgotten first. RQ tasks can always be forgotten, their state is in Redis.
    """

    def __init__(
        self,
        use_async_queue: bool = True,
        redis_url: Optional[str] = None,
        queue_name: str = "matching",
        max_workers: int = 4,
        job_timeout: str = "30m",
        telemetry: Optional[TelemetrySink] = None,
        max_tracked_tasks: int = 1000,
    ):
        self.queue_name = queue_name
        self.job_timeout = job_timeout
        self.telemetry = telemetry or LoggingTelemetrySink()
        self.max_tracked_tasks = max_tracked_tasks
        self._tasks: "OrderedDict[str, TrackedTask]" = OrderedDict()
        self._futures: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self.max_workers = max_workers

        self.redis_conn = None
        self.queue = None
        self.async_mode = False

        if not use_async_queue:
            logger.info("Async queue disabled via config. Using thread pool.")
        elif not redis_url:
            logger.info("No Redis URL configured. Using thread pool.")
        else:
            try:
                self.redis_conn = Redis.from_url(redis_url)
                self.redis_conn.ping()
                self.queue = Queue(queue_name, connection=self.redis_conn)
                self.async_mode = True
                logger.info(f"Background tasks go to Redis queue '{queue_name}'")
            except Exception as e:
                logger.error(f"Redis connection failed: {e}. Falling back to thread pool.")
                self.redis_conn = None
                self.queue = None

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="matching-task")
        return self._executor

    def submit(self, func: Callable, *args, local: Optional[Callable] = None) -> str:
        name = getattr(func, '__name__', 'task')

        if self.async_mode:
            job = self.queue.enqueue(
                func,
                *args,
                job_timeout=self.job_timeout,
                result_ttl=RQ_RESULT_TTL,
                retry=Retry(max=2, interval=[30, 120]),
            )
            task = TrackedTask(id=job.id, name=name, backend="rq")
            self._track(task)
            self.telemetry.emit("task.queued", task_id=task.id, name=name, backend="rq")
            logger.info(f"Queued {name} as job {job.id}")
            return task.id

        task = TrackedTask(id=str(uuid.uuid4()), name=name, backend="thread")
        self._track(task)
        target = local or func
        future = self._pool().submit(self._run_local, task, target, args)
        with self._lock:
            self._futures[task.id] = future
        future.add_done_callback(lambda _, task_id=task.id: self._forget_future(task_id))
        self.telemetry.emit("task.queued", task_id=task.id, name=name, backend="thread")
        return task.id

    def _track(self, task: TrackedTask) -> None:
        with self._lock:
            self._tasks[task.id] = task
            excess = len(self._tasks) - self.max_tracked_tasks
            if excess <= 0:
                return
            evictable = [
                t.id for t in self._tasks.values()
                if t.backend == "rq" or t.status in (TaskStatus.FINISHED, TaskStatus.FAILED)
            ]
            for task_id in evictable[:excess]:
                del self._tasks[task_id]

    def _forget_future(self, task_id: str) -> None:
        with self._lock:
            self._futures.pop(task_id, None)

    def _run_local(self, task: TrackedTask, target: Callable, args: tuple) -> Any:
        task.status = TaskStatus.RUNNING
        try:
            value = target(*args)
        except Exception as e:
            task.status = TaskStatus.FAILED
            task.error = str(e)
            logger.error(f"Background task {task.name} ({task.id}) failed: {e}")
            self.telemetry.emit("task.failed", task_id=task.id, name=task.name, error=str(e))
            raise
        task.status = TaskStatus.FINISHED
        task.result = value
        self.telemetry.emit("task.finished", task_id=task.id, name=task.name)
        return value

    def get_task(self, task_id: str) -> Optional[TrackedTask]:
        with self._lock:
            task = self._tasks.get(task_id)
        if task is not None and task.backend == "rq" and self.redis_conn is not None:
            try:
                job = RQJob.fetch(task_id, connection=self.redis_conn)
            except NoSuchJobError:
                logger.debug(f"RQ job {task_id} has expired; keeping last known status {task.status.value}")
                return task
            rq_status = job.get_status()
            if rq_status == "finished":
                task.status = TaskStatus.FINISHED
                task.result = job.return_value()
            elif rq_status == "failed":
                task.status = TaskStatus.FAILED
            elif rq_status == "started":
                task.status = TaskStatus.RUNNING
        return task

    def tasks(self) -> List[TrackedTask]:
        with self._lock:
            return list(self._tasks.values())

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until every thread-pool task has finished (no-op for RQ)."""
        with self._lock:
            futures = list(self._futures.values())
        if futures:
            wait_futures(futures, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def get_queue_status(self) -> Dict[str, Any]:
        if not self.async_mode:
            pending = sum(1 for t in self.tasks() if t.status in (TaskStatus.QUEUED, TaskStatus.RUNNING))
            return {'status': 'thread_pool', 'queue_length': pending}
        try:
            return {
                'status': 'active',
                'queue_length': len(self.queue),
                'redis_connected': self.redis_conn.ping()
            }
        except Exception as e:
            return {'status': 'error', 'error': str(e)}


# Worker tasks - must be at module level for RQ

def _worker_context():
    from core.app_context import AppContext
    from core.config_loader import load_config

    return AppContext.build(load_config())


def dispatch_new_job_task(job_id: str) -> Dict[str, Any]:
    context = _worker_context()
    return context.dispatcher.dispatch_for_new_job(job_id).to_dict()


def dispatch_new_candidate_task(candidate_id: str) -> Dict[str, Any]:
    context = _worker_context()
    return context.dispatcher.dispatch_for_new_candidate(candidate_id).to_dict()


def run_digest_task(frequency: str) -> Dict[str, Any]:
    context = _worker_context()
    return context.digest_service.run_digest(frequency)
