import logging
from typing import Iterable, Set, Tuple, Optional

from sqlalchemy import select

from core.scorer.models import MatchScore
from database.models import Application, utcnow
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ApplicationRepository(BaseRepository):
    def get_existing_pairs(
        self,
        candidate_ids: Iterable[str],
        job_ids: Iterable[str]
    ) -> Set[Tuple[str, str]]:
        """Return the (candidate_id, job_id) pairs that already have an application."""
        candidate_ids = list(candidate_ids)
        job_ids = list(job_ids)
        if not candidate_ids or not job_ids:
            return set()

        stmt = select(Application.candidate_id, Application.job_id).where(
            Application.candidate_id.in_(candidate_ids),
            Application.job_id.in_(job_ids)
        )
        return {(row.candidate_id, row.job_id) for row in self.db.execute(stmt)}

    def get(self, candidate_id: str, job_id: str) -> Optional[Application]:
        stmt = select(Application).where(
            Application.candidate_id == candidate_id,
            Application.job_id == job_id
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def update_match_score(self, candidate_id: str, job_id: str, score: MatchScore) -> bool:
        """
        Write the match-score fields onto an existing application.

        Returns False when the pair has no application.
        """
        application = self.get(candidate_id, job_id)
        if application is None:
            return False

        application.match_score = score.overall
        application.skill_match_score = score.skill
        application.culture_fit_score = score.culture_fit
        application.wellbeing_match_score = score.wellbeing
        application.match_breakdown = score.to_dict()
        application.match_scored_at = utcnow()
        self.db.flush()
        logger.debug(f"Stored match score {score.overall} on application {application.id}")
        return True
