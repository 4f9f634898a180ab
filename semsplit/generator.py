# Version: v1.0
"""
semsplit.generator — SchemaBoundGenerator: structured output from an
unreliable text-generation oracle.

One attempt is generate -> extract -> parse (with repair) -> validate. Any
TransientOracleError consumes one attempt; tenacity drives the loop and
exhaustion surfaces as GenerationFailure.
"""

import json
from typing import Any, Mapping, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_none,
)
from tenacity.wait import wait_base

from semsplit.config import logger
from semsplit.exceptions import (
    GenerationFailure,
    InputError,
    OracleCallError,
    TransientOracleError,
)
from semsplit.models import TextCompletion
from semsplit.repair import extract_json_object, parse_json
from semsplit.schema import validate

SCHEMA_INSTRUCTION = (
    "\n\nYou must respond with valid JSON matching this schema:\n"
    "{schema}\n\n"
    "Respond with only the JSON object, no additional text."
)


def augment_prompt(prompt: str, schema: Mapping[str, Any]) -> str:
    """Append the pretty-printed schema and a JSON-only instruction."""
    return prompt + SCHEMA_INSTRUCTION.format(schema=json.dumps(schema, indent=2))


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"Generation attempt {retry_state.attempt_number} failed: {exc}. Retrying..."
    )


class SchemaBoundGenerator:
    """Retrying, schema-enforcing wrapper around a TextCompletion.

    Args:
        completion: The text-generation capability.
        max_retries: Total attempts per generate() call (>= 1).
        wait: Optional tenacity wait policy between attempts; defaults to
            no delay.
    """

    def __init__(
        self,
        completion: TextCompletion,
        max_retries: int = 3,
        wait: Optional[wait_base] = None,
    ):
        if max_retries < 1:
            raise InputError(f"max_retries must be >= 1, got {max_retries}")
        self.completion = completion
        self.max_retries = max_retries
        self._wait = wait if wait is not None else wait_none()

    def _async_retry(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self._wait,
            retry=retry_if_exception_type(TransientOracleError),
            before_sleep=_log_retry,
            reraise=True,
        )

    async def _attempt(
        self,
        prompt: str,
        schema: Optional[Mapping[str, Any]],
        temperature: float,
        max_tokens: int,
    ) -> Any:
        try:
            text = await self.completion.generate(
                prompt, max_tokens=max_tokens, temperature=temperature
            )
        except TransientOracleError:
            raise
        except Exception as e:
            raise OracleCallError(f"Text generation failed: {e}") from e

        if schema is None:
            return text

        value = parse_json(extract_json_object(text))
        return validate(value, schema)

    async def generate(
        self,
        prompt: str,
        schema: Optional[Mapping[str, Any]] = None,
        temperature: float = 0.1,
        max_tokens: int = 200,
    ) -> Any:
        """Query the oracle until it returns a usable reply.

        Args:
            prompt: Task prompt.
            schema: Optional JSON-schema subset; when given the prompt is
                augmented and the reply parsed and validated.
            temperature: Sampling temperature.
            max_tokens: Generation length limit.

        Returns:
            The validated JSON value, or the raw text when no schema is given.

        Raises:
            GenerationFailure: After max_retries failed attempts.
        """
        full_prompt = augment_prompt(prompt, schema) if schema is not None else prompt
        attempts = 0
        result: Any = None
        try:
            async for attempt in self._async_retry():
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    result = await self._attempt(
                        full_prompt, schema, temperature, max_tokens
                    )
        except TransientOracleError as e:
            logger.error(f"Generation failed after {attempts} attempts: {e}")
            raise GenerationFailure(attempts, e) from e
        return result
