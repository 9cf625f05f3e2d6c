import contextlib
import logging
from datetime import datetime
from typing import List, Optional, Iterable, Set, Tuple

from sqlalchemy.orm import Session

from core.errors import CandidateNotFoundError, JobNotFoundError
from core.scorer.models import CandidateProfile, JobPosting, MatchScore
from database.models import MatchHistory
from database.repositories import (
    CandidateRepository,
    JobRepository,
    EmployerRepository,
    ApplicationRepository,
    MatchHistoryRepository,
    NotificationRepository,
)

logger = logging.getLogger(__name__)


class MatchingRepository:
    """
    Facade over the per-table repositories, bound to one Session.

    Also satisfies the lookups the engine depends on: get_existing_pairs for
    batch dedup, get_history_for_user / get_candidate_history for learning
    and ranking.
    """

    def __init__(self, db: Session):
        self.db = db
        self.candidates = CandidateRepository(db)
        self.jobs = JobRepository(db)
        self.employers = EmployerRepository(db)
        self.applications = ApplicationRepository(db)
        self.history = MatchHistoryRepository(db)
        self.notifications = NotificationRepository(db)

    def get_candidate_profile(self, candidate_id: str) -> CandidateProfile:
        candidate = self.candidates.get_by_id(candidate_id)
        if candidate is None:
            raise CandidateNotFoundError(candidate_id)
        return candidate.to_profile()

    def get_job_posting(self, job_id: str) -> JobPosting:
        job = self.jobs.get_by_id(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job.to_posting()

    def get_candidate_profiles(self, candidate_ids: Optional[Iterable[str]] = None) -> List[CandidateProfile]:
        if candidate_ids is None:
            rows = self.candidates.get_all()
        else:
            wanted = list(candidate_ids)
            by_id = {c.id: c for c in self.candidates.get_by_ids(wanted)}
            missing = [cid for cid in wanted if cid not in by_id]
            if missing:
                raise CandidateNotFoundError(missing[0])
            rows = [by_id[cid] for cid in wanted]
        return [row.to_profile() for row in rows]

    def get_job_postings(self, job_ids: Optional[Iterable[str]] = None) -> List[JobPosting]:
        if job_ids is None:
            rows = self.jobs.get_eligible_jobs()
        else:
            wanted = list(job_ids)
            by_id = {j.id: j for j in self.jobs.get_by_ids(wanted)}
            missing = [jid for jid in wanted if jid not in by_id]
            if missing:
                raise JobNotFoundError(missing[0])
            rows = [by_id[jid] for jid in wanted]
        return [row.to_posting() for row in rows]

    def get_existing_pairs(
        self,
        candidate_ids: Iterable[str],
        job_ids: Iterable[str]
    ) -> Set[Tuple[str, str]]:
        return self.applications.get_existing_pairs(candidate_ids, job_ids)

    def get_history_for_user(self, user_id: str, since: datetime) -> List[MatchHistory]:
        return self.history.get_history_for_user(user_id, since)

    def get_candidate_history(self, candidate_id: str, user_id: Optional[str], limit: int = 5) -> List[MatchHistory]:
        return self.history.get_candidate_history(candidate_id, user_id, limit=limit)

    def save_match(self, candidate_id: str, job_id: str, user_id: Optional[str], score: MatchScore) -> MatchHistory:
        """
        Append a history row and update the application's match fields.

        Runs in a savepoint so a failing pair rolls back alone.
        """
        with self.savepoint():
            record = self.history.append(candidate_id, job_id, user_id, score)
            self.applications.update_match_score(candidate_id, job_id, score)
        return record

    @contextlib.contextmanager
    def savepoint(self):
        nested = self.db.begin_nested()
        try:
            yield nested
        except Exception:
            nested.rollback()
            raise
        else:
            nested.commit()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
