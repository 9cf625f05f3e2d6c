from .base import Base, JSONType, generate_id, utcnow
from .candidate import Candidate
from .employer import Employer
from .job import Job
from .application import Application
from .match_history import MatchHistory
from .notification import NotificationTracker, DigestRun

__all__ = [
    'Base',
    'JSONType',
    'generate_id',
    'utcnow',
    'Candidate',
    'Employer',
    'Job',
    'Application',
    'MatchHistory',
    'NotificationTracker',
    'DigestRun',
]
