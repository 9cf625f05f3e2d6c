import logging
from datetime import datetime
from typing import List, Optional, Iterable

from sqlalchemy import select

from database.models import Candidate
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class CandidateRepository(BaseRepository):
    def get_by_id(self, candidate_id: str) -> Optional[Candidate]:
        stmt = select(Candidate).where(Candidate.id == candidate_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_ids(self, candidate_ids: Iterable[str]) -> List[Candidate]:
        ids = list(candidate_ids)
        if not ids:
            return []
        stmt = select(Candidate).where(Candidate.id.in_(ids))
        return list(self.db.execute(stmt).scalars().all())

    def get_all(self, limit: Optional[int] = None) -> List[Candidate]:
        stmt = select(Candidate).order_by(Candidate.created_at, Candidate.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def get_created_since(self, since: datetime) -> List[Candidate]:
        stmt = (
            select(Candidate)
            .where(Candidate.created_at >= since)
            .order_by(Candidate.created_at, Candidate.id)
        )
        return list(self.db.execute(stmt).scalars().all())
