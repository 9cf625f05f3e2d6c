"""
Tests for MatchingDigestService.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from core.config_loader import DigestConfig
from core.errors import InputError
from database.models import DigestRun, Employer
from database.repositories import MatchHistoryRepository
from notification.digest import MatchingDigestService
from tests import RecordingChannel, make_score

NOW = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def session_factory(bound_engine, seeded):
    return sessionmaker(bind=bound_engine)


@pytest.fixture
def add_history(session_factory):
    def add(candidate_id, overall, hours_ago=2, job_id="job-open", user_id="emp-1"):
        session = session_factory()
        MatchHistoryRepository(session).append(
            candidate_id, job_id, user_id, make_score(overall), scored_at=NOW - timedelta(hours=hours_ago)
        )
        session.commit()
        session.close()
    return add


@pytest.fixture
def update_employer(session_factory):
    def update(**fields):
        session = session_factory()
        employer = session.get(Employer, "emp-1")
        for name, value in fields.items():
            setattr(employer, name, value)
        session.commit()
        session.close()
    return update


def digest_runs(session_factory):
    session = session_factory()
    try:
        return [(r.status, r.reason, r.match_count) for r in session.execute(select(DigestRun)).scalars()]
    finally:
        session.close()


def service(channel, **config):
    return MatchingDigestService(channel=channel, config=DigestConfig(**config), clock=lambda: NOW)


class TestDigest:

    def test_daily_digest_sent(self, add_history, session_factory):
        add_history("cand-1", 85)
        add_history("cand-3", 82)
        add_history("cand-2", 47)
        channel = RecordingChannel()

        summary = service(channel).run_digest("daily")

        assert summary == {'total_sent': 1, 'total_matches': 2, 'errors': []}
        assert channel.sent[0]['recipient'] == "grace@acme.io"
        assert channel.sent[0]['subject'] == "Daily Matching Digest: 2 New Candidates"
        assert "High Priority: 2" in channel.sent[0]['text']
        assert digest_runs(session_factory) == [("sent", None, 2)]

    def test_outside_window_and_duplicates_ignored(self, add_history):
        add_history("cand-1", 85)
        add_history("cand-1", 80, hours_ago=3)
        add_history("cand-3", 90, hours_ago=30)
        channel = RecordingChannel()

        summary = service(channel).run_digest("daily")

        assert summary['total_matches'] == 1

    def test_rerun_does_not_resend_matches(self, add_history, session_factory):
        add_history("cand-1", 85)
        channel = RecordingChannel()

        first = service(channel).run_digest("daily")
        second = service(channel).run_digest("daily")

        assert first['total_sent'] == 1
        assert second == {'total_sent': 0, 'total_matches': 0, 'errors': []}
        assert len(channel.sent) == 1

        # scored after the first digest went out
        add_history("cand-3", 82, hours_ago=-1)
        later = MatchingDigestService(channel=channel, config=DigestConfig(), clock=lambda: NOW + timedelta(hours=2))

        third = later.run_digest("daily")

        assert third['total_matches'] == 1
        assert "Barbara" in channel.sent[1]['text']
        assert "Ada" not in channel.sent[1]['text']
        assert sorted(status for status, _, _ in digest_runs(session_factory)) == ["empty", "sent", "sent"]

    def test_limit_per_frequency(self, add_history):
        add_history("cand-1", 85)
        add_history("cand-3", 82)
        channel = RecordingChannel()

        summary = service(channel, daily_limit=1).run_digest("daily")

        assert summary['total_matches'] == 1
        assert "Ada" in channel.sent[0]['text']

    def test_employer_min_score(self, add_history, update_employer):
        add_history("cand-1", 85)
        add_history("cand-3", 82)
        update_employer(min_match_score=84)

        summary = service(RecordingChannel()).run_digest("daily")

        assert summary['total_matches'] == 1

    def test_empty_digest_is_recorded_not_sent(self, session_factory):
        channel = RecordingChannel()

        summary = service(channel).run_digest("daily")

        assert summary['total_sent'] == 0
        assert channel.sent == []
        assert digest_runs(session_factory) == [("empty", "No new matches in period", 0)]

    def test_other_frequency_is_skipped(self, add_history, session_factory):
        add_history("cand-1", 85)

        summary = service(RecordingChannel()).run_digest("weekly")

        assert summary['total_sent'] == 0
        assert digest_runs(session_factory) == [("skipped", "Not weekly frequency", 0)]

    def test_disabled_employer_is_skipped(self, add_history, update_employer, session_factory):
        add_history("cand-1", 85)
        update_employer(notifications_enabled=False)

        service(RecordingChannel()).run_digest("daily")

        assert digest_runs(session_factory) == [("skipped", "Notifications disabled", 0)]

    def test_missing_email_is_skipped(self, add_history, update_employer, session_factory):
        add_history("cand-1", 85)
        update_employer(email=None)

        service(RecordingChannel()).run_digest("daily")

        assert digest_runs(session_factory) == [("skipped", "No recipient email", 1)]

    def test_delivery_failure_reported(self, add_history, session_factory):
        add_history("cand-1", 85)

        summary = service(RecordingChannel(fail=True)).run_digest("daily")

        assert summary['total_sent'] == 0
        assert summary['errors'] == ["Employer emp-1: delivery failed"]
        assert digest_runs(session_factory)[0][0] == "failed"

    def test_unknown_frequency(self, session_factory):
        with pytest.raises(InputError):
            service(RecordingChannel()).run_digest("monthly")
