from sqlalchemy import Column, Text, Integer, TIMESTAMP, ForeignKey, Index

from core.scorer.models import DIMENSIONS, MatchBreakdown, MatchScore, ScoreSource
from .base import Base, JSONType, generate_id, utcnow


class MatchHistory(Base):
    """
    One row per scored (candidate, job) at a point in time.

    Append-only for the matching engine. `outcome` is set later by the hiring
    pipeline (contacted, interviewed, offered, hired, rejected).
    """
    __tablename__ = 'match_history'

    id = Column(Text, primary_key=True, default=generate_id)
    candidate_id = Column(Text, ForeignKey('candidates.id', ondelete='CASCADE'), nullable=False)
    job_id = Column(Text, ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False)
    # Employer that owns the job at scoring time
    user_id = Column(Text, nullable=True)

    overall = Column(Integer, nullable=False)
    skill = Column(Integer, nullable=False)
    experience = Column(Integer, nullable=False)
    culture_fit = Column(Integer, nullable=False)
    wellbeing = Column(Integer, nullable=False)
    work_setting = Column(Integer, nullable=False)
    salary_fit = Column(Integer, nullable=False)
    location_fit = Column(Integer, nullable=False)
    career_growth = Column(Integer, nullable=False)
    soft_skills = Column(Integer, nullable=False)
    score_source = Column(Text, nullable=False, default=ScoreSource.ORACLE.value)
    breakdown = Column(JSONType, default=dict)

    outcome = Column(Text, nullable=True)
    outcome_updated_at = Column(TIMESTAMP(timezone=True))

    scored_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_match_history_user_scored', 'user_id', 'scored_at'),
        Index('idx_match_history_candidate_user', 'candidate_id', 'user_id', 'scored_at'),
    )

    @classmethod
    def from_score(cls, candidate_id: str, job_id: str, user_id, score: MatchScore, **kwargs) -> "MatchHistory":
        return cls(
            candidate_id=candidate_id,
            job_id=job_id,
            user_id=user_id,
            overall=score.overall,
            score_source=score.source.value,
            breakdown=score.breakdown.to_dict(),
            **score.dimensions(),
            **kwargs,
        )

    def to_score(self) -> MatchScore:
        return MatchScore(
            overall=self.overall,
            breakdown=MatchBreakdown.from_dict(self.breakdown),
            source=ScoreSource(self.score_source),
            **{name: getattr(self, name) for name in DIMENSIONS},
        )
