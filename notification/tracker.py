#!/usr/bin/env python3
"""
Notification Tracker - Deduplication Service

A (candidate, job, event type) pair is notified at most once. Dispatchers
claim the pair before sending: the claim inserts a pending row whose
dedup hash is unique, so when two dispatchers race only one insert wins and
the loser sees an IntegrityError and skips the pair. Rows whose delivery
failed may be claimed again by a later pass.

Usage:
    tracker = NotificationTrackerService(repo)

    record = tracker.claim(candidate_id, job_id, "new_job_match", recipient, tracking_id)
    if record is not None:
        result = channel.send(...)
        tracker.mark_result([record.id], result)
"""

import hashlib
import logging
import uuid
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.exc import IntegrityError

from database.models import NotificationTracker, utcnow
from database.repository import MatchingRepository
from notification.channels import DeliveryResult, mask_email

logger = logging.getLogger(__name__)

EVENT_NEW_JOB_MATCH = "new_job_match"
EVENT_NEW_CANDIDATE_MATCH = "new_candidate_match"

STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"


class NotificationTrackerService:
    def __init__(self, repo: MatchingRepository):
        self.repo = repo

    @staticmethod
    def generate_dedup_hash(candidate_id: str, job_id: str, event_type: str) -> str:
        key = f"{candidate_id}:{job_id}:{event_type}"
        return hashlib.sha256(key.encode('utf-8')).hexdigest()[:32]

    @staticmethod
    def generate_tracking_id() -> str:
        return uuid.uuid4().hex

    def already_notified(self, candidate_id: str, job_id: str, event_type: str) -> bool:
        existing = self.repo.notifications.get_by_dedup_hash(
            self.generate_dedup_hash(candidate_id, job_id, event_type)
        )
        return existing is not None and existing.status != STATUS_FAILED

    def claim(
        self,
        candidate_id: str,
        job_id: str,
        event_type: str,
        recipient: str,
        tracking_id: str,
        recipient_id: Optional[str] = None,
        channel_type: str = "email",
        subject: Optional[str] = None,
        event_data: Optional[Dict[str, Any]] = None
    ) -> Optional[NotificationTracker]:
        """
        Reserve the pair for sending.

        Returns the pending tracker row, or None if the pair was already
        notified (or is being notified by someone else).
        """
        dedup_hash = self.generate_dedup_hash(candidate_id, job_id, event_type)
        existing = self.repo.notifications.get_by_dedup_hash(dedup_hash)

        if existing is not None:
            if existing.status != STATUS_FAILED:
                logger.info(f"Suppressing duplicate {event_type} for candidate={candidate_id} job={job_id}")
                return None
            existing.status = STATUS_PENDING
            existing.tracking_id = tracking_id
            existing.recipient = recipient
            existing.subject = subject
            existing.error_message = None
            existing.send_count += 1
            existing.last_attempt_at = utcnow()
            self.repo.db.flush()
            logger.info(f"Re-claiming previously failed {event_type} for candidate={candidate_id} job={job_id}")
            return existing

        record = NotificationTracker(
            candidate_id=candidate_id,
            job_id=job_id,
            event_type=event_type,
            channel_type=channel_type,
            dedup_hash=dedup_hash,
            tracking_id=tracking_id,
            recipient_id=recipient_id,
            recipient=recipient,
            subject=subject,
            status=STATUS_PENDING,
            event_data=event_data or {},
        )
        try:
            with self.repo.savepoint():
                self.repo.db.add(record)
                self.repo.db.flush()
        except IntegrityError:
            logger.info(f"Pair candidate={candidate_id} job={job_id} claimed concurrently for {event_type}")
            return None
        return record

    def mark_result(self, record_ids: Iterable[str], result: DeliveryResult) -> None:
        """Record the delivery outcome on claimed rows (looked up by id, so a fresh session works)."""
        now = utcnow()
        for record_id in record_ids:
            record = self.repo.db.get(NotificationTracker, record_id)
            if record is None:
                continue
            record.last_attempt_at = now
            if result.success:
                record.status = STATUS_SENT
                record.message_id = result.message_id
                record.sent_at = now
                record.error_message = None
            else:
                record.status = STATUS_FAILED
                record.error_message = result.error
                logger.warning(
                    f"Delivery to {mask_email(record.recipient)} failed for "
                    f"candidate={record.candidate_id} job={record.job_id}: {result.error}"
                )
        self.repo.db.flush()

    def record_engagement(self, tracking_id: str, kind: str) -> int:
        """Stamp opened_at / clicked_at on every row delivered under tracking_id."""
        if kind not in ("open", "click"):
            raise ValueError(f"Unknown engagement kind: {kind}")
        column = "opened_at" if kind == "open" else "clicked_at"

        now = utcnow()
        updated = 0
        for record in self.repo.notifications.get_by_tracking_id(tracking_id):
            if getattr(record, column) is None:
                setattr(record, column, now)
                updated += 1
        self.repo.db.flush()
        return updated
