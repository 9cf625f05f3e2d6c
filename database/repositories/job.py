import logging
from datetime import datetime
from typing import List, Optional, Iterable

from sqlalchemy import select

from core.scorer.models import ELIGIBLE_JOB_STATUSES
from database.models import Job
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

_ELIGIBLE = sorted(ELIGIBLE_JOB_STATUSES)


class JobRepository(BaseRepository):
    def get_by_id(self, job_id: str) -> Optional[Job]:
        stmt = select(Job).where(Job.id == job_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_ids(self, job_ids: Iterable[str]) -> List[Job]:
        ids = list(job_ids)
        if not ids:
            return []
        stmt = select(Job).where(Job.id.in_(ids))
        return list(self.db.execute(stmt).scalars().all())

    def get_eligible_jobs(self, limit: Optional[int] = None) -> List[Job]:
        """Jobs that are open or published, oldest first."""
        stmt = select(Job).where(Job.status.in_(_ELIGIBLE)).order_by(Job.created_at, Job.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def get_eligible_created_since(self, since: datetime) -> List[Job]:
        stmt = (
            select(Job)
            .where(Job.status.in_(_ELIGIBLE), Job.created_at >= since)
            .order_by(Job.created_at, Job.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_by_employer(self, employer_id: str) -> List[Job]:
        stmt = select(Job).where(Job.employer_id == employer_id).order_by(Job.created_at)
        return list(self.db.execute(stmt).scalars().all())
