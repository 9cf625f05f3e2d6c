"""
OpenAI Service - Scoring oracle backed by the OpenAI chat completions API.

Calls are bounded twice: the client carries a per-request timeout and
tenacity stops after a fixed number of attempts. Anything that still fails
surfaces as OracleError.
"""
from typing import Dict, Any, Optional, Tuple
import copy
import json
import logging

import openai
from openai import OpenAI
from tenacity import (
    Retrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.errors import OracleError
from core.llm.interfaces import LLMProvider
from core.llm.system_prompts import (
    MATCH_SCORING_SYSTEM_PROMPT,
    MATCH_EXPLANATION_SYSTEM_PROMPT,
)
from core.llm.schema_models import (
    MATCH_ANALYSIS_SCHEMA,
    MATCH_EXPLANATION_SCHEMA,
)

logger = logging.getLogger(__name__)

_RETRYABLE_ERRORS = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
)

# Longest single backoff sleep; keeps a pair's worst case close to the timeout budget
_MAX_BACKOFF_SECONDS = 10.0


def _log_retry(retry_state: RetryCallState) -> None:
    """Log a warning before each retry sleep."""
    exc = retry_state.outcome.exception()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "Transient oracle error (attempt %s). Waiting %.1fs before retry. Details: %s",
        retry_state.attempt_number, wait, exc,
    )


def _wait_respecting_retry_after(retry_state: RetryCallState) -> float:
    """Honour a numeric Retry-After header on rate limits, else exponential backoff."""
    exc = retry_state.outcome.exception()
    if isinstance(exc, openai.RateLimitError):
        try:
            retry_after = float(exc.response.headers.get("retry-after", "0"))
        except (AttributeError, TypeError, ValueError):
            retry_after = 0.0
        if retry_after > 0:
            return min(retry_after, _MAX_BACKOFF_SECONDS)

    exp = wait_exponential(multiplier=1, min=1, max=_MAX_BACKOFF_SECONDS)
    return exp(retry_state)


def _unwrap_schema_spec(spec: Dict[str, Any]) -> Tuple[str, bool, Dict[str, Any]]:
    """Unwrap {'name', 'strict', 'schema'} into its parts; raw schemas pass through."""
    if isinstance(spec, dict) and "schema" in spec and "name" in spec:
        return spec.get("name", "oracle_response"), bool(spec.get("strict", False)), spec["schema"]
    return "oracle_response", False, spec


class OpenAIService(LLMProvider):
    """
    OpenAI scoring oracle.

    Uses JSON Schema response mode so the payload shape is enforced server
    side where supported; the caller still validates it.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model_config: Optional[Dict[str, Any]] = None,
        timeout_seconds: float = 30.0,
        max_attempts: int = 2,
    ):
        client_kwargs = {
            'timeout': timeout_seconds,
            # retries are owned by tenacity below
            'max_retries': 0,
        }
        if api_key:
            client_kwargs['api_key'] = api_key
        if base_url:
            client_kwargs['base_url'] = base_url

        self.client = OpenAI(**client_kwargs)

        self.model_config = model_config or {}
        self.scoring_model = self.model_config.get('scoring_model', 'gpt-4o-mini')
        self.explanation_model = self.model_config.get('explanation_model') or self.scoring_model
        self.temperature = self.model_config.get('temperature', 0.0)
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts

    def _retrying(self) -> Retrying:
        return Retrying(
            retry=retry_if_exception_type(_RETRYABLE_ERRORS),
            wait=_wait_respecting_retry_after,
            stop=stop_after_attempt(self.max_attempts),
            before_sleep=_log_retry,
            reraise=True,
        )

    def _complete_json(
        self,
        model: str,
        system_prompt: str,
        user_message: str,
        schema_spec: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Run one structured completion and return the decoded JSON object."""
        name, strict, raw_schema = _unwrap_schema_spec(schema_spec)
        runtime_schema = copy.deepcopy(raw_schema)

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ]

        try:
            response = self._retrying()(
                self.client.chat.completions.create,
                model=model,
                messages=messages,
                temperature=self.temperature,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": name,
                        "schema": runtime_schema,
                        "strict": strict,
                    },
                },
            )
        except openai.OpenAIError as e:
            raise OracleError(f"{type(e).__name__}: {e}") from e

        try:
            content = response.choices[0].message.content
        except (IndexError, AttributeError) as e:
            raise OracleError(f"Malformed completion response: {e}") from e

        if not content:
            raise OracleError("Empty completion content")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise OracleError(f"Completion is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise OracleError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    def score_match(self, request: Dict[str, Any]) -> Dict[str, Any]:
        user_message = (
            "Analyse the compatibility between this candidate and this job.\n\n"
            f"<CANDIDATE>\n{json.dumps(request.get('candidate', {}), indent=2, default=str)}\n</CANDIDATE>\n\n"
            f"<JOB>\n{json.dumps(request.get('job', {}), indent=2, default=str)}\n</JOB>"
        )
        data = self._complete_json(
            self.scoring_model,
            MATCH_SCORING_SYSTEM_PROMPT,
            user_message,
            MATCH_ANALYSIS_SCHEMA,
        )
        logger.debug(f"Oracle scored match: overall={data.get('overallMatchScore')}")
        return data

    def explain_match(self, request: Dict[str, Any]) -> Dict[str, Any]:
        user_message = (
            f"<CANDIDATE>\n{json.dumps(request.get('candidate', {}), indent=2, default=str)}\n</CANDIDATE>\n\n"
            f"<JOB>\n{json.dumps(request.get('job', {}), indent=2, default=str)}\n</JOB>\n\n"
            f"<SCORES>\n{json.dumps(request.get('scores', {}), indent=2)}\n</SCORES>\n\n"
            "Explain this match to the candidate."
        )
        return self._complete_json(
            self.explanation_model,
            MATCH_EXPLANATION_SYSTEM_PROMPT,
            user_message,
            MATCH_EXPLANATION_SCHEMA,
        )
