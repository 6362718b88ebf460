"""Text completion service used by the tier generators."""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import anthropic

from .errors import CompletionError, CompletionTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionRequest:
    """A single prompt sent to the completion service."""

    system: str
    prompt: str
    max_tokens: int = 2000
    temperature: float = 0.2
    task: str = "card_generation"


class TextCompletion(Protocol):
    """Anything that turns a prompt into response text."""

    def complete(self, request: CompletionRequest) -> str:
        """
        Return the raw response text.

        Raises:
            CompletionTimeout: The service did not answer in time
            CompletionError: The service failed or was unavailable
        """
        ...


class AnthropicCompletion:
    """Completion backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "claude-sonnet-4-20250514",
        timeout: float = 60.0,
        max_retries: int = 0,
    ):
        """
        Initialize the completion client.

        Args:
            api_key: Anthropic API key (uses ANTHROPIC_API_KEY env var if not provided)
            model: Claude model to use
            timeout: Seconds to wait for each request
            max_retries: SDK-level retries. Each retry, timeouts included, gets a
                fresh timeout, so one call can take up to (max_retries + 1) x timeout
                plus backoff.
        """
        self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=max_retries)
        self.model = model
        self.timeout = timeout

    def complete(self, request: CompletionRequest) -> str:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                system=request.system,
                messages=[{"role": "user", "content": request.prompt}],
            )
        except anthropic.APITimeoutError as e:
            raise CompletionTimeout(f"{request.task} timed out after {self.timeout}s") from e
        except anthropic.APIError as e:
            raise CompletionError(f"{request.task} failed: {e}") from e

        # Safely extract response text
        if not response.content:
            logger.debug("Empty completion for %s", request.task)
            return ""
        content_block = response.content[0]
        if not hasattr(content_block, "text"):
            return ""
        return content_block.text
