from sqlalchemy import Column, Text, Integer, TIMESTAMP, ForeignKey, Index
from sqlalchemy.orm import relationship

from core.scorer.models import JobPosting
from .base import Base, JSONType, generate_id, utcnow


class Job(Base):
    """
    Job posting. Only open/published jobs take part in matching.
    """
    __tablename__ = 'jobs'

    id = Column(Text, primary_key=True, default=generate_id)
    employer_id = Column(Text, ForeignKey('employers.id', ondelete='CASCADE'), nullable=True)
    title = Column(Text, nullable=False)
    company_name = Column(Text)
    status = Column(Text, nullable=False, default='draft')  # draft, open, published, closed

    required_skills = Column(JSONType, default=list)
    preferred_skills = Column(JSONType, default=list)
    description = Column(Text)
    enriched_description = Column(Text)

    work_setting = Column(Text)
    employment_type = Column(Text)
    location = Column(Text)
    salary_min = Column(Integer)
    salary_max = Column(Integer)

    company_size = Column(Text)
    industry = Column(Text)
    team_structure = Column(Text)
    career_growth_opportunities = Column(Text)
    learning_opportunities = Column(Text)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    employer = relationship("Employer", back_populates="jobs")

    __table_args__ = (
        Index('idx_jobs_status', 'status'),
        Index('idx_jobs_created_at', 'created_at'),
    )

    def to_posting(self) -> JobPosting:
        return JobPosting(
            id=self.id,
            title=self.title,
            employer_id=self.employer_id,
            company_name=self.company_name,
            status=self.status,
            required_skills=list(self.required_skills or []),
            preferred_skills=list(self.preferred_skills or []),
            description=self.description,
            enriched_description=self.enriched_description,
            work_setting=self.work_setting,
            employment_type=self.employment_type,
            location=self.location,
            salary_min=self.salary_min,
            salary_max=self.salary_max,
            company_size=self.company_size,
            industry=self.industry,
            team_structure=self.team_structure,
            career_growth_opportunities=self.career_growth_opportunities,
            learning_opportunities=self.learning_opportunities,
        )
