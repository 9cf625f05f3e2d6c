"""
LLM Provider Interface - Abstract base for scoring oracles.

The scoring engine only depends on this contract; OpenAIService is one
implementation, tests substitute mocks.
"""
from abc import ABC, abstractmethod
from typing import Dict, Any


class LLMProvider(ABC):
    """
    Abstract Interface for AI Service Providers (OpenAI, Ollama, Anthropic, etc.).
    """

    @abstractmethod
    def score_match(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Score a candidate/job pair.

        Args:
            request: {'candidate': {...}, 'job': {...}} attribute summaries

        Returns:
            Raw response object following MATCH_ANALYSIS_SCHEMA. Callers
            validate it; implementations raise OracleError on transport failure.
        """
        pass

    @abstractmethod
    def explain_match(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Produce a human-readable explanation for an existing score.

        Args:
            request: {'candidate': {...}, 'job': {...}, 'scores': {...}}
        """
        pass
