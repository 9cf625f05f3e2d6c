from sqlalchemy import Column, Text, Integer, Float, Boolean, TIMESTAMP, Index

from core.scorer.models import CandidateProfile
from .base import Base, JSONType, generate_id, utcnow


class Candidate(Base):
    """
    Candidate profile with the attributes used for matching.

    AI-inferred columns (soft_skills .. achievements) are filled by resume
    parsing upstream and are read-only here.
    """
    __tablename__ = 'candidates'

    id = Column(Text, primary_key=True, default=generate_id)
    name = Column(Text)
    email = Column(Text)

    skills = Column(JSONType, default=list)
    years_of_experience = Column(Float)
    education = Column(JSONType, default=list)

    # Explicit preferences
    preferred_work_setting = Column(Text)
    team_size = Column(Text)
    management_style = Column(Text)
    work_life_balance = Column(Text)
    expected_salary = Column(Integer)
    desired_salary_min = Column(Integer)
    desired_salary_max = Column(Integer)
    location = Column(Text)
    willing_to_relocate = Column(Boolean, nullable=False, default=False)

    # Inferred attributes
    soft_skills = Column(JSONType, default=list)
    personality_traits = Column(JSONType, default=list)
    communication_style = Column(Text)
    career_goals = Column(Text)
    learning_style = Column(Text)
    professional_summary = Column(Text)
    industry_experience = Column(JSONType, default=list)
    achievements = Column(JSONType, default=list)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_candidates_created_at', 'created_at'),
    )

    def to_profile(self) -> CandidateProfile:
        return CandidateProfile(
            id=self.id,
            name=self.name,
            email=self.email,
            skills=list(self.skills or []),
            years_of_experience=self.years_of_experience,
            education=list(self.education or []),
            preferred_work_setting=self.preferred_work_setting,
            team_size=self.team_size,
            management_style=self.management_style,
            work_life_balance=self.work_life_balance,
            expected_salary=self.expected_salary,
            desired_salary_min=self.desired_salary_min,
            desired_salary_max=self.desired_salary_max,
            location=self.location,
            willing_to_relocate=bool(self.willing_to_relocate),
            soft_skills=list(self.soft_skills or []),
            personality_traits=list(self.personality_traits or []),
            communication_style=self.communication_style,
            career_goals=self.career_goals,
            learning_style=self.learning_style,
            professional_summary=self.professional_summary,
            industry_experience=list(self.industry_experience or []),
            achievements=list(self.achievements or []),
        )
