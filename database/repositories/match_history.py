import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select

from core.learning.weights import parse_outcome
from core.scorer.models import MatchScore
from database.models import MatchHistory, utcnow
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class MatchHistoryRepository(BaseRepository):
    def append(
        self,
        candidate_id: str,
        job_id: str,
        user_id: Optional[str],
        score: MatchScore,
        scored_at: Optional[datetime] = None
    ) -> MatchHistory:
        extra = {'scored_at': scored_at} if scored_at is not None else {}
        record = MatchHistory.from_score(candidate_id, job_id, user_id, score, **extra)
        self.db.add(record)
        self.db.flush()
        return record

    def get_history_for_user(self, user_id: str, since: datetime) -> List[MatchHistory]:
        stmt = (
            select(MatchHistory)
            .where(MatchHistory.user_id == user_id, MatchHistory.scored_at >= since)
            .order_by(MatchHistory.scored_at, MatchHistory.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_candidate_history(
        self,
        candidate_id: str,
        user_id: Optional[str],
        limit: int = 5
    ) -> List[MatchHistory]:
        """Most recent records first."""
        stmt = select(MatchHistory).where(MatchHistory.candidate_id == candidate_id)
        if user_id is not None:
            stmt = stmt.where(MatchHistory.user_id == user_id)
        stmt = stmt.order_by(MatchHistory.scored_at.desc(), MatchHistory.id.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def get_recent_matches_for_employer(
        self,
        employer_id: str,
        since: datetime,
        min_score: int
    ) -> List[MatchHistory]:
        """Matches on the employer's jobs scored since `since`, best first."""
        stmt = (
            select(MatchHistory)
            .where(
                MatchHistory.user_id == employer_id,
                MatchHistory.scored_at >= since,
                MatchHistory.overall >= min_score
            )
            .order_by(MatchHistory.overall.desc(), MatchHistory.scored_at.desc(), MatchHistory.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def record_outcome(self, history_id: str, outcome: str) -> Optional[MatchHistory]:
        parsed = parse_outcome(outcome)
        if parsed is None:
            raise ValueError(f"Unknown outcome: {outcome}")

        record = self.db.get(MatchHistory, history_id)
        if record is None:
            return None
        record.outcome = parsed.value
        record.outcome_updated_at = utcnow()
        self.db.flush()
        logger.info(f"Recorded outcome {parsed.value} for match history {history_id}")
        return record
