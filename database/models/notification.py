from sqlalchemy import Column, Text, TIMESTAMP, Integer, UniqueConstraint, Index

from .base import Base, JSONType, generate_id, utcnow


class NotificationTracker(Base):
    """
    Tracks match notifications for deduplication and engagement.

    One row per (candidate, job, event type); the dedup hash is unique so two
    dispatchers racing on the same pair cannot both claim it. tracking_id
    identifies the delivered email (shared by all pairs of a summary).
    """
    __tablename__ = 'notification_tracker'

    id = Column(Text, primary_key=True, default=generate_id)

    candidate_id = Column(Text, nullable=False)
    job_id = Column(Text, nullable=False)
    event_type = Column(Text, nullable=False)  # new_job_match, new_candidate_match
    channel_type = Column(Text, nullable=False, default='email')

    # Deduplication key - hash of candidate + job + event type
    dedup_hash = Column(Text, nullable=False)
    tracking_id = Column(Text, nullable=False, index=True)

    recipient_id = Column(Text)  # candidate or employer id
    recipient = Column(Text, nullable=False)
    subject = Column(Text)
    status = Column(Text, nullable=False, default='pending')  # pending, sent, failed
    message_id = Column(Text)
    error_message = Column(Text)
    event_data = Column(JSONType, default=dict)
    send_count = Column(Integer, nullable=False, default=1)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    last_attempt_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    sent_at = Column(TIMESTAMP(timezone=True))
    opened_at = Column(TIMESTAMP(timezone=True))
    clicked_at = Column(TIMESTAMP(timezone=True))

    __table_args__ = (
        UniqueConstraint('dedup_hash', name='uq_notification_dedup'),
        Index('idx_notification_pair', 'candidate_id', 'job_id'),
    )


class DigestRun(Base):
    """
    Outcome of one employer digest check: sent, empty, skipped or failed.

    Written for every employer on every digest pass, including when there was
    nothing to send.
    """
    __tablename__ = 'matching_digest_runs'

    id = Column(Text, primary_key=True, default=generate_id)
    employer_id = Column(Text, nullable=False, index=True)
    frequency = Column(Text, nullable=False)  # daily, weekly
    status = Column(Text, nullable=False)
    reason = Column(Text)
    match_count = Column(Integer, nullable=False, default=0)
    high_priority_count = Column(Integer, nullable=False, default=0)
    tracking_id = Column(Text, index=True)
    message_id = Column(Text)
    error_message = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
