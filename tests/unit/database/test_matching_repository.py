"""
Tests for MatchingRepository and the per-table repositories on SQLite.
"""
from datetime import datetime, timedelta, timezone

import pytest

from core.errors import CandidateNotFoundError, JobNotFoundError
from database.models import Application, Job, MatchHistory
from tests import make_score


class TestProfiles:

    def test_profiles_and_postings(self, repo, seeded):
        candidate = repo.get_candidate_profile("cand-1")
        job = repo.get_job_posting("job-open")

        assert candidate.skills == ["Python", "SQL"]
        assert candidate.willing_to_relocate is False
        assert job.employer_id == "emp-1"
        assert job.is_eligible

    def test_missing_entities_raise(self, repo, seeded):
        with pytest.raises(CandidateNotFoundError):
            repo.get_candidate_profile("nobody")
        with pytest.raises(JobNotFoundError):
            repo.get_job_posting("nothing")
        with pytest.raises(CandidateNotFoundError):
            repo.get_candidate_profiles(["cand-1", "ghost"])

    def test_profiles_keep_requested_order(self, repo, seeded):
        profiles = repo.get_candidate_profiles(["cand-3", "cand-1"])
        assert [p.id for p in profiles] == ["cand-3", "cand-1"]

    def test_default_job_list_is_eligible_only(self, repo, seeded):
        assert [j.id for j in repo.get_job_postings()] == ["job-open"]


class TestJobRepository:

    @pytest.fixture
    def more_jobs(self, db_session, seeded):
        three_days_ago = datetime.now(timezone.utc) - timedelta(days=3)
        db_session.add_all([
            Job(id="job-published", employer_id="emp-1", title="Data Engineer", status="published",
                created_at=three_days_ago),
            Job(id="job-closed", employer_id="emp-1", title="Old Role", status="closed",
                created_at=three_days_ago),
        ])
        db_session.flush()

    def test_eligible_jobs_are_open_or_published(self, repo, more_jobs):
        assert [j.id for j in repo.jobs.get_eligible_jobs()] == ["job-published", "job-open"]
        assert [j.id for j in repo.jobs.get_eligible_jobs(limit=1)] == ["job-published"]

    def test_eligible_created_since_skips_older_and_ineligible(self, repo, more_jobs):
        since = datetime.now(timezone.utc) - timedelta(days=1)
        assert [j.id for j in repo.jobs.get_eligible_created_since(since)] == ["job-open"]

        week_ago = datetime.now(timezone.utc) - timedelta(days=7)
        assert [j.id for j in repo.jobs.get_eligible_created_since(week_ago)] == ["job-published", "job-open"]


class TestApplications:

    def test_existing_pairs(self, repo, db_session, seeded):
        db_session.add(Application(candidate_id="cand-1", job_id="job-open"))
        db_session.flush()

        pairs = repo.get_existing_pairs(["cand-1", "cand-2"], ["job-open", "job-draft"])

        assert pairs == {("cand-1", "job-open")}
        assert repo.get_existing_pairs([], ["job-open"]) == set()

    def test_update_match_score_without_application(self, repo, seeded):
        assert repo.applications.update_match_score("cand-2", "job-open", make_score(50)) is False


class TestMatchHistory:

    def test_save_match_appends_history(self, repo, seeded):
        record = repo.save_match("cand-1", "job-open", "emp-1", make_score(77, skill=90))

        assert record.id
        stored = repo.history.get_candidate_history("cand-1", "emp-1")
        assert [r.overall for r in stored] == [77]
        assert stored[0].skill == 90
        assert stored[0].to_score().skill == 90

    def test_failed_savepoint_keeps_earlier_rows(self, repo, db_session, seeded):
        repo.save_match("cand-1", "job-open", "emp-1", make_score(70))

        with pytest.raises(RuntimeError):
            with repo.savepoint():
                repo.history.append("cand-2", "job-open", "emp-1", make_score(40))
                raise RuntimeError("abort this pair")

        assert db_session.query(MatchHistory).count() == 1

    def test_history_for_user_respects_window(self, repo, seeded):
        now = datetime.now(timezone.utc)
        repo.history.append("cand-1", "job-open", "emp-1", make_score(70), scored_at=now - timedelta(days=40))
        repo.history.append("cand-2", "job-open", "emp-1", make_score(60), scored_at=now - timedelta(days=2))
        repo.history.append("cand-3", "job-open", "emp-2", make_score(60), scored_at=now)

        records = repo.get_history_for_user("emp-1", now - timedelta(days=30))

        assert [r.candidate_id for r in records] == ["cand-2"]

    def test_candidate_history_is_newest_first_and_limited(self, repo, seeded):
        now = datetime.now(timezone.utc)
        for days, overall in ((3, 50), (2, 60), (1, 70)):
            repo.history.append("cand-1", "job-open", "emp-1", make_score(overall), scored_at=now - timedelta(days=days))

        records = repo.get_candidate_history("cand-1", "emp-1", limit=2)

        assert [r.overall for r in records] == [70, 60]

    def test_recent_matches_for_employer(self, repo, seeded):
        now = datetime.now(timezone.utc)
        repo.history.append("cand-1", "job-open", "emp-1", make_score(90))
        repo.history.append("cand-2", "job-open", "emp-1", make_score(40))
        repo.history.append("cand-3", "job-open", "emp-1", make_score(75))

        records = repo.history.get_recent_matches_for_employer("emp-1", now - timedelta(days=1), min_score=60)

        assert [r.candidate_id for r in records] == ["cand-1", "cand-3"]

    def test_record_outcome(self, repo, seeded):
        record = repo.save_match("cand-1", "job-open", "emp-1", make_score(80))

        updated = repo.history.record_outcome(record.id, "Interviewed")

        assert updated.outcome == "interviewed"
        assert updated.outcome_updated_at is not None
        assert repo.history.record_outcome("missing", "hired") is None
        with pytest.raises(ValueError):
            repo.history.record_outcome(record.id, "ghosted")
