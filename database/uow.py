import contextlib
import logging
from typing import Callable, ContextManager, Iterable, Set, Tuple

from database.database import db_session_scope
from database.repository import MatchingRepository

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def matching_uow():
    """Per-unit-of-work transaction scope.

    Yields a MatchingRepository bound to a fresh Session. Commits on success,
    rolls back on exception, always closes.

    Usage:
        with matching_uow() as repo:
            job = repo.get_job_posting(job_id)
            # perform operations...
        # commit happens automatically on successful exit
    """
    with db_session_scope() as session:
        yield MatchingRepository(session)


UowFactory = Callable[[], ContextManager[MatchingRepository]]


class ScopedApplicationLookup:
    """Application dedup lookup that opens a short unit of work per call."""

    def __init__(self, uow_factory: UowFactory = matching_uow):
        self.uow_factory = uow_factory

    def get_existing_pairs(
        self,
        candidate_ids: Iterable[str],
        job_ids: Iterable[str]
    ) -> Set[Tuple[str, str]]:
        with self.uow_factory() as repo:
            return repo.get_existing_pairs(candidate_ids, job_ids)


class ScopedHistoryLookup:
    """History lookups for weight learning and ranking, one unit of work per call."""

    def __init__(self, uow_factory: UowFactory = matching_uow):
        self.uow_factory = uow_factory

    def get_history_for_user(self, user_id, since):
        with self.uow_factory() as repo:
            records = repo.get_history_for_user(user_id, since)
            repo.db.expunge_all()
            return records

    def get_candidate_history(self, candidate_id, user_id, limit: int = 5):
        with self.uow_factory() as repo:
            records = repo.get_candidate_history(candidate_id, user_id, limit=limit)
            repo.db.expunge_all()
            return records
