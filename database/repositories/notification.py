import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select

from database.models import NotificationTracker, DigestRun
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class NotificationRepository(BaseRepository):
    def get_by_dedup_hash(self, dedup_hash: str) -> Optional[NotificationTracker]:
        stmt = select(NotificationTracker).where(NotificationTracker.dedup_hash == dedup_hash)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_tracking_id(self, tracking_id: str) -> List[NotificationTracker]:
        stmt = (
            select(NotificationTracker)
            .where(NotificationTracker.tracking_id == tracking_id)
            .order_by(NotificationTracker.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_for_pair(self, candidate_id: str, job_id: str) -> List[NotificationTracker]:
        stmt = select(NotificationTracker).where(
            NotificationTracker.candidate_id == candidate_id,
            NotificationTracker.job_id == job_id
        )
        return list(self.db.execute(stmt).scalars().all())

    def add_digest_run(self, run: DigestRun) -> DigestRun:
        self.db.add(run)
        self.db.flush()
        return run

    def get_last_digest_run(self, employer_id: str, frequency: str, status: str) -> Optional[DigestRun]:
        stmt = (
            select(DigestRun)
            .where(
                DigestRun.employer_id == employer_id,
                DigestRun.frequency == frequency,
                DigestRun.status == status
            )
            .order_by(DigestRun.created_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_digest_runs(
        self,
        employer_id: Optional[str] = None,
        since: Optional[datetime] = None
    ) -> List[DigestRun]:
        stmt = select(DigestRun)
        if employer_id is not None:
            stmt = stmt.where(DigestRun.employer_id == employer_id)
        if since is not None:
            stmt = stmt.where(DigestRun.created_at >= since)
        stmt = stmt.order_by(DigestRun.created_at)
        return list(self.db.execute(stmt).scalars().all())
