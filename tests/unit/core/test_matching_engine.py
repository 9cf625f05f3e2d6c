"""
Tests for MatchingEngine against a SQLite database.

The engine is wired by AppContext.build with no oracle credentials, so every
score comes from the deterministic heuristic.
"""
import io
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from core.app_context import AppContext
from core.batch.models import BulkMatchStatus, GroupBy, MatchType
from core.batch.telemetry import InMemoryTelemetrySink
from core.config_loader import AppConfig, NotificationConfig
from core.errors import CandidateNotFoundError, JobNotEligibleError, JobNotFoundError
from core.learning.weights import LearningWeights
from database.models import Application, MatchHistory
from tests import make_candidate, make_job


@pytest.fixture
def context(bound_engine, seeded):
    config = AppConfig(notifications=NotificationConfig(enabled=False))
    return AppContext.build(config, telemetry=InMemoryTelemetrySink(), configure_database=False)


@pytest.fixture
def engine(context):
    return context.engine


@pytest.fixture
def read_session(bound_engine):
    session = sessionmaker(bind=bound_engine)()
    yield session
    session.close()


def history_count(session) -> int:
    return session.execute(select(func.count()).select_from(MatchHistory)).scalar_one()


class TestScoring:

    def test_context_without_credentials_has_no_oracle(self, context):
        assert context.oracle is None
        assert context.dispatcher is None

    def test_score_one_scores_unsaved_profiles(self, engine, read_session):
        candidate = make_candidate(skills=["JavaScript", "React"])
        job = make_job(required_skills=["JavaScript", "React", "Node.js"])

        score = engine.score_one(candidate, job)

        assert score.skill == 67
        assert score.is_fallback
        assert history_count(read_session) == 0

    def test_score_by_ids_persists_history(self, engine, read_session):
        score = engine.score_by_ids("cand-1", "job-open")

        assert score.overall == 85
        assert score.is_fallback
        record = read_session.execute(select(MatchHistory)).scalar_one()
        assert record.candidate_id == "cand-1"
        assert record.user_id == "emp-1"
        assert record.overall == 85
        assert record.score_source == "fallback"

    def test_score_by_ids_updates_existing_application(self, engine, bound_engine, read_session):
        setup = sessionmaker(bind=bound_engine)()
        setup.add(Application(candidate_id="cand-1", job_id="job-open"))
        setup.commit()
        setup.close()

        engine.score_by_ids("cand-1", "job-open")

        application = read_session.execute(select(Application)).scalar_one()
        assert application.match_score == 85
        assert application.skill_match_score == 100
        assert application.match_breakdown['source'] == "fallback"

    def test_score_without_persist(self, engine, read_session):
        engine.score_by_ids("cand-2", "job-open", persist=False)
        assert history_count(read_session) == 0

    def test_unknown_ids(self, engine):
        with pytest.raises(CandidateNotFoundError):
            engine.score_by_ids("nobody", "job-open")
        with pytest.raises(JobNotFoundError):
            engine.score_by_ids("cand-1", "no-job")

    def test_explain_match(self, engine):
        explanation = engine.explain_match("cand-1", "job-open")

        assert explanation.matched_skills == ["python", "sql"]
        assert explanation.growth_opportunities == ["Tech lead track"]


class TestBatch:

    def test_batch_over_all_eligible_jobs(self, engine, read_session):
        results = engine.batch_match()

        assert [r.subject_id for r in results] == ["job-open"]
        assert results[0].candidate_ids == ["cand-1", "cand-3", "cand-2"]
        assert [e.score.overall for e in results[0].entries] == [85, 82, 47]
        assert history_count(read_session) == 3

    def test_batch_skips_existing_applications(self, engine, bound_engine):
        setup = sessionmaker(bind=bound_engine)()
        setup.add(Application(candidate_id="cand-3", job_id="job-open"))
        setup.commit()
        setup.close()

        results = engine.batch_match(jobs=["job-open"], min_score=60, persist=False)

        assert results[0].candidate_ids == ["cand-1"]

    def test_batch_grouped_by_candidate(self, engine):
        results = engine.batch_match(candidates=["cand-2", "cand-1"], group_by=GroupBy.CANDIDATE, persist=False)
        assert [r.subject_id for r in results] == ["cand-2", "cand-1"]

    def test_batch_rejects_ineligible_job(self, engine, read_session):
        with pytest.raises(JobNotEligibleError):
            engine.batch_match(jobs=["job-draft"])
        assert history_count(read_session) == 0

    def test_bulk_match_lifecycle(self, engine):
        bulk_job = engine.run_bulk_match(MatchType.CANDIDATES_TO_JOB, job_ids=["job-open"])

        assert bulk_job.status == BulkMatchStatus.COMPLETED
        assert bulk_job.results_summary()['total_processed'] == 3

    def test_bulk_match_needs_one_subject(self, engine):
        with pytest.raises(ValueError):
            engine.run_bulk_match(MatchType.CANDIDATES_TO_JOB)
        with pytest.raises(ValueError):
            engine.run_bulk_match(MatchType.JOBS_TO_CANDIDATE, candidate_ids=["cand-1", "cand-2"])

    def test_export_csv(self, engine):
        results = engine.batch_match(persist=False)
        stream = io.StringIO()

        assert engine.export_csv(results, stream) == 3
        assert stream.getvalue().splitlines()[0].startswith("Rank,Candidate ID")


class TestRecommendations:

    def test_recommend_with_default_weights(self, engine):
        recs = engine.recommend("job-open")

        assert {r.candidate.id for r in recs} == {"cand-1", "cand-3"}
        assert all(r.recommendation_score == 81 for r in recs)
        assert all(r.confidence == 0.7 for r in recs)

    def test_outcome_feeds_weights_and_bonus(self, engine, read_session):
        engine.score_by_ids("cand-1", "job-open")
        history_id = read_session.execute(select(MatchHistory.id)).scalar_one()
        # release the SQLite read lock before the engine writes
        read_session.rollback()

        assert engine.record_outcome(history_id, "hired") is True

        weights = engine.estimate_weights("emp-1")
        assert not weights.is_default
        assert weights.successful_samples == 1

        recs = engine.recommend("job-open", min_score=0)
        top = recs[0]
        assert top.candidate.id == "cand-1"
        assert top.recommendation_score == 96
        assert top.last_outcome == "hired"
        assert top.confidence == 0.95
        assert recs[-1].candidate.id == "cand-2"

    def test_explicit_zero_lookback_is_passed_through(self, engine):
        with patch.object(engine, "estimate_weights", return_value=LearningWeights.default()) as estimate:
            engine.recommend("job-open", lookback_days=0)
            engine.recommend("job-open")

        assert estimate.call_args_list[0].args == ("emp-1", 0)
        assert estimate.call_args_list[1].args == ("emp-1", 90)

    def test_record_outcome_unknown_history(self, engine):
        assert engine.record_outcome("missing", "hired") is False

    def test_record_outcome_rejects_unknown_value(self, engine):
        with pytest.raises(ValueError):
            engine.record_outcome("missing", "ghosted")

    def test_statistics(self, engine):
        stats = engine.recommendation_statistics(engine.recommend("job-open"))
        assert stats.total == 2
        assert stats.average_score == 81.0


class TestNotificationsDisabled:

    def test_dispatch_and_digest_raise(self, engine):
        with pytest.raises(RuntimeError):
            engine.dispatch_for_new_job("job-open")
        with pytest.raises(RuntimeError):
            engine.run_digest("daily")
