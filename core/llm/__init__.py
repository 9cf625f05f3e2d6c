"""LLM Module - scoring oracle interface and implementations."""
from core.llm.interfaces import LLMProvider
from core.llm.openai_service import OpenAIService

__all__ = ['LLMProvider', 'OpenAIService']
