from sqlalchemy import Column, Text, Integer, TIMESTAMP, ForeignKey, UniqueConstraint, Index

from .base import Base, JSONType, generate_id, utcnow


class Application(Base):
    """
    A candidate's application to a job.

    Existence of a row is the batch matching dedup signal. The match_* columns
    are filled when the pair is scored.
    """
    __tablename__ = 'applications'

    id = Column(Text, primary_key=True, default=generate_id)
    candidate_id = Column(Text, ForeignKey('candidates.id', ondelete='CASCADE'), nullable=False)
    job_id = Column(Text, ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False)
    status = Column(Text, nullable=False, default='submitted')

    match_score = Column(Integer)
    skill_match_score = Column(Integer)
    culture_fit_score = Column(Integer)
    wellbeing_match_score = Column(Integer)
    match_breakdown = Column(JSONType)
    match_scored_at = Column(TIMESTAMP(timezone=True))

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint('candidate_id', 'job_id', name='uq_application_candidate_job'),
        Index('idx_applications_job', 'job_id'),
    )
