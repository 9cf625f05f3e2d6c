"""
Tests for NotificationTrackerService deduplication.
"""
from unittest.mock import patch

import pytest

from database.models import NotificationTracker
from notification.channels import DeliveryResult
from notification.tracker import (
    EVENT_NEW_CANDIDATE_MATCH,
    EVENT_NEW_JOB_MATCH,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENT,
    NotificationTrackerService,
)


@pytest.fixture
def tracker(repo, seeded):
    return NotificationTrackerService(repo)


def claim(tracker, candidate_id="cand-1", job_id="job-open", event_type=EVENT_NEW_JOB_MATCH, tracking_id="t-1"):
    return tracker.claim(candidate_id, job_id, event_type, "ada@example.com", tracking_id)


class TestDedupHash:

    def test_hash_is_stable_and_event_specific(self):
        first = NotificationTrackerService.generate_dedup_hash("c", "j", EVENT_NEW_JOB_MATCH)

        assert first == NotificationTrackerService.generate_dedup_hash("c", "j", EVENT_NEW_JOB_MATCH)
        assert first != NotificationTrackerService.generate_dedup_hash("c", "j", EVENT_NEW_CANDIDATE_MATCH)
        assert len(first) == 32

    def test_tracking_ids_are_unique(self):
        assert NotificationTrackerService.generate_tracking_id() != NotificationTrackerService.generate_tracking_id()


class TestClaim:

    def test_first_claim_creates_pending_row(self, tracker):
        record = claim(tracker)

        assert record.status == STATUS_PENDING
        assert record.send_count == 1
        assert tracker.already_notified("cand-1", "job-open", EVENT_NEW_JOB_MATCH)

    def test_second_claim_is_suppressed(self, tracker):
        claim(tracker)
        assert claim(tracker, tracking_id="t-2") is None

    def test_other_event_type_is_independent(self, tracker):
        claim(tracker)
        assert claim(tracker, event_type=EVENT_NEW_CANDIDATE_MATCH) is not None

    def test_failed_delivery_can_be_reclaimed(self, tracker):
        record = claim(tracker)
        tracker.mark_result([record.id], DeliveryResult.failed("mailbox full"))
        assert not tracker.already_notified("cand-1", "job-open", EVENT_NEW_JOB_MATCH)

        again = claim(tracker, tracking_id="t-2")

        assert again.id == record.id
        assert again.status == STATUS_PENDING
        assert again.send_count == 2
        assert again.tracking_id == "t-2"
        assert again.error_message is None

    def test_concurrent_insert_loses_cleanly(self, tracker, repo):
        claim(tracker)

        with patch.object(repo.notifications, "get_by_dedup_hash", return_value=None):
            assert claim(tracker, tracking_id="t-2") is None

        assert repo.db.query(NotificationTracker).count() == 1


class TestResults:

    def test_mark_sent(self, tracker):
        record = claim(tracker)

        tracker.mark_result([record.id, "missing-id"], DeliveryResult(success=True, message_id="m-1"))

        assert record.status == STATUS_SENT
        assert record.message_id == "m-1"
        assert record.sent_at is not None

    def test_mark_failed(self, tracker):
        record = claim(tracker)
        tracker.mark_result([record.id], DeliveryResult.failed("bounced"))

        assert record.status == STATUS_FAILED
        assert record.error_message == "bounced"

    def test_record_engagement(self, tracker):
        claim(tracker, tracking_id="shared")
        claim(tracker, job_id="job-draft", tracking_id="shared")

        assert tracker.record_engagement("shared", "open") == 2
        assert tracker.record_engagement("shared", "open") == 0
        assert tracker.record_engagement("shared", "click") == 2
        with pytest.raises(ValueError):
            tracker.record_engagement("shared", "forward")
