#!/usr/bin/env python3
"""
Matching Digest Service - periodic per-employer summaries of new matches.

Every employer is checked on every pass and every check leaves a DigestRun
row: sent, empty, skipped (with the reason) or failed.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.batch.telemetry import LoggingTelemetrySink, TelemetrySink
from core.config_loader import DigestConfig
from core.errors import InputError
from database.models import DigestRun
from database.uow import matching_uow, UowFactory
from notification.channels import DeliveryResult, NotificationChannel, mask_email
from notification.message_builder import (
    CandidateMatchEntry,
    DigestContent,
    NotificationMessageBuilder,
)
from notification.tracker import NotificationTrackerService

logger = logging.getLogger(__name__)

FREQUENCY_DAYS = {
    'daily': 1,
    'weekly': 7,
}

RUN_SENT = "sent"
RUN_EMPTY = "empty"
RUN_SKIPPED = "skipped"
RUN_FAILED = "failed"

TOP_SKILLS_IN_DIGEST = 5


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive timestamps
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class MatchingDigestService:
    def __init__(
        self,
        channel: NotificationChannel,
        message_builder: Optional[NotificationMessageBuilder] = None,
        uow_factory: UowFactory = matching_uow,
        config: Optional[DigestConfig] = None,
        telemetry: Optional[TelemetrySink] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.channel = channel
        self.message_builder = message_builder or NotificationMessageBuilder()
        self.uow_factory = uow_factory
        self.config = config or DigestConfig()
        self.telemetry = telemetry or LoggingTelemetrySink()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _limit_for(self, frequency: str) -> int:
        return self.config.daily_limit if frequency == 'daily' else self.config.weekly_limit

    def run_digest(self, frequency: str) -> Dict[str, Any]:
        """
        Send the daily or weekly digest to every employer that wants one.

        Returns:
            {'total_sent', 'total_matches', 'errors'}

        Raises:
            InputError: frequency is not daily or weekly
        """
        if frequency not in FREQUENCY_DAYS:
            raise InputError(f"Unknown digest frequency: {frequency}")

        now = self._clock()
        with self.uow_factory() as repo:
            employer_ids = [e.id for e in repo.employers.get_all()]

        total_sent = 0
        total_matches = 0
        errors: List[str] = []

        for employer_id in employer_ids:
            try:
                status, match_count = self._digest_for_employer(employer_id, frequency, now)
            except Exception as e:
                logger.error(f"Digest for employer {employer_id} failed: {e}")
                errors.append(f"Employer {employer_id}: {e}")
                self._record_run(employer_id, frequency, RUN_FAILED, now, error_message=str(e))
                continue

            if status == RUN_SENT:
                total_sent += 1
                total_matches += match_count
            elif status == RUN_FAILED:
                errors.append(f"Employer {employer_id}: delivery failed")

        summary = {'total_sent': total_sent, 'total_matches': total_matches, 'errors': errors}
        self.telemetry.emit("digest.completed", frequency=frequency, employers=len(employer_ids), **summary)
        logger.info(
            f"{frequency.capitalize()} digest: {total_sent} sent, {total_matches} matches, "
            f"{len(errors)} errors across {len(employer_ids)} employers"
        )
        return summary

    def _record_run(self, employer_id: str, frequency: str, status: str, now: datetime, **fields) -> None:
        try:
            with self.uow_factory() as repo:
                repo.notifications.add_digest_run(DigestRun(
                    employer_id=employer_id, frequency=frequency, status=status, created_at=now, **fields
                ))
        except Exception as e:
            logger.error(f"Could not record digest run for employer {employer_id}: {e}")

    def _collect(self, repo, employer, frequency: str, now: datetime) -> List[CandidateMatchEntry]:
        min_score = employer.min_match_score
        if min_score is None:
            min_score = self.config.default_min_score
        since = now - timedelta(days=FREQUENCY_DAYS[frequency])
        # Matches already covered by the last sent digest are not repeated
        last_sent = repo.notifications.get_last_digest_run(employer.id, frequency, RUN_SENT)
        if last_sent is not None and _as_utc(last_sent.created_at) > since:
            since = _as_utc(last_sent.created_at)

        seen = set()
        picked = []
        for record in repo.history.get_recent_matches_for_employer(employer.id, since, min_score):
            pair = (record.candidate_id, record.job_id)
            if pair in seen:
                continue
            seen.add(pair)
            picked.append(record)
            if len(picked) >= self._limit_for(frequency):
                break

        candidates = {c.id: c for c in repo.candidates.get_by_ids({r.candidate_id for r in picked})}
        jobs = {j.id: j for j in repo.jobs.get_by_ids({r.job_id for r in picked})}

        entries = []
        for record in picked:
            candidate = candidates.get(record.candidate_id)
            job = jobs.get(record.job_id)
            entries.append(CandidateMatchEntry(
                candidate_id=record.candidate_id,
                candidate_name=candidate.name if candidate else None,
                candidate_email=candidate.email if candidate else None,
                job_id=record.job_id,
                job_title=job.title if job else "Unknown position",
                overall=record.overall,
                skill=record.skill,
                culture_fit=record.culture_fit,
                wellbeing=record.wellbeing,
                top_skills=list((candidate.skills or [])[:TOP_SKILLS_IN_DIGEST]) if candidate else [],
                years_of_experience=candidate.years_of_experience if candidate else None,
                location=candidate.location if candidate else None,
            ))
        return entries

    def _digest_for_employer(self, employer_id: str, frequency: str, now: datetime) -> Tuple[str, int]:
        with self.uow_factory() as repo:
            employer = repo.employers.get_by_id(employer_id)
            if employer is None:
                return RUN_SKIPPED, 0

            if not employer.notifications_enabled:
                reason = "Notifications disabled"
            elif employer.digest_frequency != frequency:
                reason = f"Not {frequency} frequency"
            else:
                reason = None

            if reason is not None:
                repo.notifications.add_digest_run(DigestRun(
                    employer_id=employer_id, frequency=frequency, status=RUN_SKIPPED,
                    reason=reason, created_at=now,
                ))
                return RUN_SKIPPED, 0

            entries = self._collect(repo, employer, frequency, now)
            if not entries:
                repo.notifications.add_digest_run(DigestRun(
                    employer_id=employer_id, frequency=frequency, status=RUN_EMPTY,
                    reason="No new matches in period", created_at=now,
                ))
                logger.info(f"No {frequency} digest matches for employer {employer_id}")
                return RUN_EMPTY, 0

            if not employer.email:
                repo.notifications.add_digest_run(DigestRun(
                    employer_id=employer_id, frequency=frequency, status=RUN_SKIPPED,
                    reason="No recipient email", match_count=len(entries), created_at=now,
                ))
                return RUN_SKIPPED, 0

            content = DigestContent(
                employer_id=employer_id,
                employer_name=employer.company_name or employer.name,
                frequency=frequency,
                period_start=now - timedelta(days=FREQUENCY_DAYS[frequency]),
                period_end=now,
                high_priority_score=self.config.high_priority_score,
                matches=entries,
            )
            recipient = employer.email

        tracking_id = NotificationTrackerService.generate_tracking_id()
        message = self.message_builder.digest(content, tracking_id)
        try:
            delivery = self.channel.send(
                recipient, message.subject, message.html, message.text,
                {'tracking_id': tracking_id, 'employer_id': employer_id},
            )
        except Exception as e:
            logger.error(f"Digest delivery to {mask_email(recipient)} raised: {e}")
            delivery = DeliveryResult.failed(str(e))

        status = RUN_SENT if delivery.success else RUN_FAILED
        self._record_run(
            employer_id, frequency, status, now,
            match_count=content.total_matches,
            high_priority_count=content.high_priority_matches,
            tracking_id=tracking_id,
            message_id=delivery.message_id,
            error_message=delivery.error,
        )
        self.telemetry.emit(
            "digest.employer", employer_id=employer_id, frequency=frequency,
            status=status, matches=content.total_matches,
        )
        return status, content.total_matches
