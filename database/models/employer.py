from sqlalchemy import Column, Text, Integer, Boolean, TIMESTAMP
from sqlalchemy.orm import relationship

from .base import Base, generate_id, utcnow


class Employer(Base):
    """
    Employer account and its match notification preferences.
    """
    __tablename__ = 'employers'

    id = Column(Text, primary_key=True, default=generate_id)
    name = Column(Text)
    email = Column(Text)
    company_name = Column(Text)

    # Notification preferences
    notifications_enabled = Column(Boolean, nullable=False, default=True)
    digest_frequency = Column(Text, nullable=False, default='daily')  # daily, weekly, never
    min_match_score = Column(Integer, nullable=False, default=60)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    jobs = relationship("Job", back_populates="employer")
