"""Scheduled matching runs and the lock that keeps them from overlapping."""

from .control import PipelineBusyError, PipelineController
from .runner import MatchingPipelineResult, run_digest, run_full_batch, run_incremental

__all__ = [
    'MatchingPipelineResult',
    'PipelineBusyError',
    'PipelineController',
    'run_digest',
    'run_full_batch',
    'run_incremental',
]
