from database.repositories.base import BaseRepository
from database.repositories.candidate import CandidateRepository
from database.repositories.job import JobRepository
from database.repositories.employer import EmployerRepository
from database.repositories.application import ApplicationRepository
from database.repositories.match_history import MatchHistoryRepository
from database.repositories.notification import NotificationRepository

__all__ = [
    'BaseRepository',
    'CandidateRepository',
    'JobRepository',
    'EmployerRepository',
    'ApplicationRepository',
    'MatchHistoryRepository',
    'NotificationRepository',
]
