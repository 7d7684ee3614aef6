from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import anthropic
from typing import Callable, Any

from utils.logger import setup_logger
import config

logger = setup_logger(__name__)

# Errors worth another attempt: throttling, overload (529) and transport failures
RETRYABLE_ERRORS = (
    anthropic.RateLimitError,
    anthropic.InternalServerError,
    anthropic.APIConnectionError,
)


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        f"LLM call attempt {retry_state.attempt_number} failed "
        f"({type(error).__name__}); retrying in {wait:.1f}s"
    )


class RetryHandler:
    """Retries Anthropic calls on transient errors with exponential backoff."""

    def __init__(
        self,
        max_retries: int = config.MAX_RETRIES,
        base_delay: float = config.RETRY_BACKOFF_MULTIPLIER
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay

    async def execute_with_retry(
        self,
        func: Callable,
        *args,
        **kwargs
    ) -> Any:
        """Await func(*args, **kwargs), retrying transient API errors.

        Raises:
            The last error once attempts run out, or any non-transient error
        """
        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.base_delay, min=2, max=60),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=_log_retry,
            reraise=True
        )
        async def _wrapper():
            return await func(*args, **kwargs)

        return await _wrapper()
