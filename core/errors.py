"""
Matching engine exceptions.

InputError subclasses are raised to callers (bad ids, ineligible jobs).
OracleError never leaves the scorer: it always resolves to the heuristic path.
"""
from typing import Optional


class MatchingError(Exception):
    """Base class for matching engine errors."""


class InputError(MatchingError):
    """Caller supplied an invalid candidate, job or option."""


class CandidateNotFoundError(InputError):
    def __init__(self, candidate_id: str):
        self.candidate_id = candidate_id
        super().__init__(f"Candidate not found: {candidate_id}")


class JobNotFoundError(InputError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class JobNotEligibleError(InputError):
    def __init__(self, job_id: str, status: Optional[str]):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} is not eligible for matching (status={status})")


class OracleError(MatchingError):
    """Scoring oracle call failed or returned an unusable payload."""


class DispatchError(MatchingError):
    """A notification could not be delivered."""
