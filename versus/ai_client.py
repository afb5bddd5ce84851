"""OpenAI API Client Wrapper

This module provides an OpenAIClient wrapper around the official openai Python SDK.
It is the text-classification capability used by the classification stage: one chat
completion per reply, JSON response format, token usage returned for the run log.

Includes API-key validation, per-call usage, cost estimation for the run log, and
structured error logging.
"""

import os
from typing import Any, Dict, Optional

import openai
import structlog
from openai import APIConnectionError, InternalServerError


def _get_logger():
    """Get logger instance (allows for easier mocking in tests)."""
    return structlog.get_logger()


class OpenAIClient:
    """OpenAI API client wrapper with authentication and cost estimation.

    Validates the API key at initialization and logs API errors with request context.
    Token totals per run are kept by the caller from the usage each call returns.

    Attributes:
        client: Async OpenAI SDK client instance
        model: Default model for completions

    Example:
        >>> client = OpenAIClient()
        >>> result = await client.send_chat_completion(
        ...     system_prompt="You classify Reddit comments.",
        ...     user_prompt="POST TITLE: Claude Code vs Codex ..."
        ... )
        >>> result['usage']
        {'prompt_tokens': 412, 'completion_tokens': 96, 'total_tokens': 508}
    """

    # Cost constants for gpt-4o-mini (per 1M tokens)
    COST_PER_1M_INPUT_TOKENS = 0.15
    COST_PER_1M_OUTPUT_TOKENS = 0.60

    def __init__(self, model: str = "gpt-4o-mini"):
        """Initialize OpenAI client with API key from environment.

        Args:
            model: Default model for send_chat_completion

        Raises:
            ValueError: If OPENAI_API_KEY is missing or empty
        """
        api_key = os.environ.get("OPENAI_API_KEY", "").strip()

        if not api_key:
            raise ValueError(
                "OPENAI_API_KEY environment variable is required but not set. "
                "Please set OPENAI_API_KEY to your OpenAI API key."
            )

        self.client = openai.AsyncOpenAI(api_key=api_key)
        self.model = model
        _get_logger().info("openai_client_initialized", model=model)

    @classmethod
    def estimate_cost(cls, prompt_tokens: int, completion_tokens: int) -> float:
        """Dollar cost of the given token counts at the configured prices."""
        input_cost = (prompt_tokens / 1_000_000) * cls.COST_PER_1M_INPUT_TOKENS
        output_cost = (completion_tokens / 1_000_000) * cls.COST_PER_1M_OUTPUT_TOKENS
        return input_cost + output_cost

    async def send_chat_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
        response_format: Optional[str] = "json_object",
    ) -> Dict[str, Any]:
        """Send a chat completion request.

        Args:
            system_prompt: System message defining assistant behavior
            user_prompt: User message carrying the thread context
            model: Model name (default: the client's model)
            temperature: Sampling temperature (default: 0.0)
            max_tokens: Max completion tokens (default: 1024)
            response_format: Response format type (default: json_object, None to omit)

        Returns:
            Dictionary with:
                - content (str): Raw response content from the assistant
                - usage (dict): prompt_tokens, completion_tokens, total_tokens

        Raises:
            APIConnectionError: Network/connection failures
            InternalServerError: 5xx server errors from OpenAI
            APIError: Other API errors (authentication, rate limits, etc.)
        """
        model = model or self.model

        try:
            create_kwargs: Dict[str, Any] = {
                "model": model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt}
                ],
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
            if response_format:
                create_kwargs["response_format"] = {"type": response_format}

            response = await self.client.chat.completions.create(**create_kwargs)

            content = response.choices[0].message.content or ""
            prompt_tokens = response.usage.prompt_tokens
            completion_tokens = response.usage.completion_tokens

            if not isinstance(prompt_tokens, int) or not isinstance(completion_tokens, int):
                prompt_tokens = 0
                completion_tokens = 0

            usage = {
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens
            }

            _get_logger().info(
                "openai_chat_completion_success",
                model=model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                estimated_cost=round(self.estimate_cost(prompt_tokens, completion_tokens), 6),
            )

            return {
                "content": content,
                "usage": usage
            }

        except (APIConnectionError, InternalServerError) as e:
            _get_logger().error(
                "openai_api_error",
                error_type=type(e).__name__,
                error_message=str(e),
                model=model,
                retryable=True,
                user_prompt_length=len(user_prompt)
            )
            raise

        except Exception as e:
            _get_logger().error(
                "openai_api_error",
                error_type=type(e).__name__,
                error_message=str(e),
                model=model,
                user_prompt_length=len(user_prompt)
            )
            raise
