"""
Tests for MatchNotificationDispatcher on SQLite with a recording channel.

Seeded heuristic scores against job-open: cand-1 85, cand-3 82 (no email),
cand-2 47.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from core.batch.orchestrator import BatchMatchOrchestrator
from core.batch.telemetry import InMemoryTelemetrySink
from core.config_loader import NotificationConfig
from core.errors import CandidateNotFoundError, JobNotEligibleError
from core.scorer.service import ScoreCalculator
from database.models import Employer, Job, MatchHistory, NotificationTracker
from database.uow import ScopedApplicationLookup
from notification.service import DispatchState, MatchNotificationDispatcher
from notification.tracker import STATUS_FAILED, STATUS_SENT
from tests import RecordingChannel


@pytest.fixture
def telemetry():
    return InMemoryTelemetrySink()


@pytest.fixture
def make_dispatcher(bound_engine, seeded, telemetry):
    def build(channel=None, **config):
        orchestrator = BatchMatchOrchestrator(
            ScoreCalculator(), application_lookup=ScopedApplicationLookup(), telemetry=telemetry
        )
        return MatchNotificationDispatcher(
            orchestrator=orchestrator,
            channel=channel or RecordingChannel(),
            config=NotificationConfig(**config),
            telemetry=telemetry,
        )
    return build


@pytest.fixture
def session(bound_engine):
    s = sessionmaker(bind=bound_engine)()
    yield s
    s.close()


class TestNewJobDispatch:

    def test_notifies_candidates_above_threshold(self, make_dispatcher, session, telemetry):
        channel = RecordingChannel()
        result = make_dispatcher(channel).dispatch_for_new_job("job-open")

        assert result.state == DispatchState.DISPATCHED
        assert result.pairs_scored == 3
        assert result.matches == 2
        assert result.notifications_sent == 1
        assert result.skipped_no_recipient == 1
        assert [m['recipient'] for m in channel.sent] == ["ada@example.com"]
        assert "Backend Engineer" in channel.sent[0]['subject']
        assert "Matched skills: python, sql" in channel.sent[0]['text']
        assert "Tech lead track" in channel.sent[0]['text']

        states = [e.data['state'] for e in telemetry.named("dispatch.state")]
        assert states == ["created", "scoring", "filtered", "dispatched"]

        rows = session.execute(select(NotificationTracker)).scalars().all()
        assert [(r.candidate_id, r.status) for r in rows] == [("cand-1", STATUS_SENT)]
        assert len(session.execute(select(MatchHistory)).scalars().all()) == 2

    def test_repeated_dispatch_does_not_renotify(self, make_dispatcher):
        channel = RecordingChannel()
        dispatcher = make_dispatcher(channel)

        dispatcher.dispatch_for_new_job("job-open")
        second = dispatcher.dispatch_for_new_job("job-open")

        assert second.duplicates_skipped == 1
        assert second.notifications_sent == 0
        assert len(channel.sent) == 1

    def test_failed_delivery_is_counted_and_retried_later(self, make_dispatcher, session):
        failing = make_dispatcher(RecordingChannel(fail=True)).dispatch_for_new_job("job-open")

        assert failing.failures == 1
        assert failing.notifications_sent == 0
        status = session.execute(select(NotificationTracker.status)).scalar_one()
        assert status == STATUS_FAILED
        session.rollback()

        retry = make_dispatcher(RecordingChannel()).dispatch_for_new_job("job-open")
        assert retry.notifications_sent == 1

    def test_threshold_from_config(self, make_dispatcher):
        result = make_dispatcher(new_job_min_score=84).dispatch_for_new_job("job-open")
        assert result.matches == 1

    def test_ineligible_job_rejected(self, make_dispatcher):
        with pytest.raises(JobNotEligibleError):
            make_dispatcher().dispatch_for_new_job("job-draft")

    def test_webhook_channel_uses_configured_url(self, make_dispatcher):
        channel = RecordingChannel(channel='webhook')
        result = make_dispatcher(channel, webhook_url="https://hooks.example.com/match").dispatch_for_new_job("job-open")

        assert result.notifications_sent == 2
        assert {m['recipient'] for m in channel.sent} == {"https://hooks.example.com/match"}


class TestNewCandidateDispatch:

    def test_employer_gets_one_summary(self, make_dispatcher, bound_engine):
        setup = sessionmaker(bind=bound_engine)()
        setup.add(Job(id="job-data", employer_id="emp-1", title="Data Engineer", status="published",
                      required_skills=["sql"], work_setting="remote"))
        setup.commit()
        setup.close()
        channel = RecordingChannel()

        result = make_dispatcher(channel).dispatch_for_new_candidate("cand-1")

        assert result.matches == 2
        assert result.notifications_sent == 1
        assert len(channel.sent) == 1
        assert channel.sent[0]['recipient'] == "grace@acme.io"
        assert channel.sent[0]['subject'] == "Ada matches 2 open jobs"

    def test_top_n_per_employer(self, make_dispatcher, bound_engine):
        setup = sessionmaker(bind=bound_engine)()
        setup.add(Job(id="job-data", employer_id="emp-1", title="Data Engineer", status="open",
                      required_skills=["sql"], work_setting="remote"))
        setup.commit()
        setup.close()
        channel = RecordingChannel()

        make_dispatcher(channel, new_candidate_top_n=1).dispatch_for_new_candidate("cand-1")

        assert channel.sent[0]['subject'] == "Ada matches 1 open job"

    def test_employer_with_notifications_disabled(self, make_dispatcher, bound_engine):
        setup = sessionmaker(bind=bound_engine)()
        setup.get(Employer, "emp-1").notifications_enabled = False
        setup.commit()
        setup.close()
        channel = RecordingChannel()

        result = make_dispatcher(channel).dispatch_for_new_candidate("cand-1")

        assert result.matches == 1
        assert channel.sent == []

    def test_repeat_is_suppressed(self, make_dispatcher):
        channel = RecordingChannel()
        dispatcher = make_dispatcher(channel)

        dispatcher.dispatch_for_new_candidate("cand-1")
        second = dispatcher.dispatch_for_new_candidate("cand-1")

        assert second.duplicates_skipped == 1
        assert len(channel.sent) == 1

    def test_below_threshold_sends_nothing(self, make_dispatcher):
        channel = RecordingChannel()
        result = make_dispatcher(channel).dispatch_for_new_candidate("cand-2")

        assert result.matches == 0
        assert channel.sent == []

    def test_unknown_candidate(self, make_dispatcher):
        with pytest.raises(CandidateNotFoundError):
            make_dispatcher().dispatch_for_new_candidate("ghost")
