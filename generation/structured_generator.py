"""Structured generation: prompt + pydantic schema -> validated object."""
import json
from typing import Any, Optional, Type, TypeVar

from anthropic import AsyncAnthropic
from pydantic import BaseModel, ValidationError

from utils.logger import setup_logger
from generation.retry_handler import RetryHandler
import config

logger = setup_logger(__name__)

T = TypeVar("T", bound=BaseModel)

RESULT_TOOL_NAME = "record_result"


class GenerationError(Exception):
    """Raised when a structured generation call fails."""
    pass


class GenerationUnavailableError(GenerationError):
    """Raised when no API credentials are configured."""
    pass


def extract_json(response_text: str) -> Any:
    """Recover a JSON value from a model's text reply.

    Tries the raw text, then a fenced code block, then the span between the
    first opening bracket and the last matching closing bracket.

    Args:
        response_text: Model reply

    Returns:
        Parsed JSON value

    Raises:
        json.JSONDecodeError: If nothing parseable is found
    """
    try:
        return json.loads(response_text)
    except json.JSONDecodeError:
        pass

    extracted = None
    # Try ```json ... ```
    if "```json" in response_text:
        parts = response_text.split("```json")
        if len(parts) > 1:
            extracted = parts[1].split("```")[0].strip()
    # Try ``` ... ``` (generic code block)
    elif "```" in response_text:
        parts = response_text.split("```")
        if len(parts) >= 3:
            extracted = parts[1].strip()

    if extracted:
        try:
            return json.loads(extracted)
        except json.JSONDecodeError:
            pass

    # Last resort: first [ or { up to the last matching ] or }
    start_arr = response_text.find('[')
    start_obj = response_text.find('{')
    if start_arr != -1 or start_obj != -1:
        if start_arr == -1:
            start, end_char = start_obj, '}'
        elif start_obj == -1:
            start, end_char = start_arr, ']'
        else:
            start = min(start_arr, start_obj)
            end_char = ']' if start == start_arr else '}'

        end = response_text.rfind(end_char)
        if end != -1:
            try:
                return json.loads(response_text[start:end + 1])
            except json.JSONDecodeError:
                pass

    raise json.JSONDecodeError("Could not parse or extract JSON", response_text, 0)


class StructuredGenerator:
    """Calls Claude and returns data conforming to a pydantic schema.

    The schema is offered as the input schema of a single forced tool, so
    the reply arrives as a tool call whose arguments are validated against
    the model.
    """

    def __init__(
        self,
        api_key: Optional[str] = config.ANTHROPIC_API_KEY,
        model: str = config.ANTHROPIC_MODEL,
        max_tokens: int = config.LLM_MAX_TOKENS,
        client: Optional[AsyncAnthropic] = None,
        retry_handler: Optional[RetryHandler] = None
    ):
        """Initialize generator.

        Args:
            api_key: Anthropic API key; without one the generator is unavailable
            model: Model name to use
            max_tokens: Output token cap per call
            client: Pre-built async client (tests, shared pools)
            retry_handler: Retry policy for transient API errors
        """
        self.model = model
        self.max_tokens = max_tokens
        self.retry_handler = retry_handler or RetryHandler()
        self.total_tokens_used = 0

        if client is not None:
            self.client = client
        elif api_key:
            self.client = AsyncAnthropic(api_key=api_key)
        else:
            self.client = None
            logger.warning("ANTHROPIC_API_KEY not set - structured generation disabled")

    @property
    def is_available(self) -> bool:
        return self.client is not None

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        response_model: Type[T],
        temperature: float = 0.2
    ) -> T:
        """Run one structured generation call.

        Args:
            system_prompt: System instructions
            user_prompt: User message
            response_model: Pydantic model the reply must conform to
            temperature: Sampling temperature

        Returns:
            Validated instance of response_model

        Raises:
            GenerationUnavailableError: If no credentials are configured
            GenerationError: If the call fails or the reply does not conform
        """
        if not self.is_available:
            raise GenerationUnavailableError("No API key configured")

        tool = {
            "name": RESULT_TOOL_NAME,
            "description": f"Record the {response_model.__name__} result.",
            "input_schema": response_model.model_json_schema(),
        }

        try:
            message = await self.retry_handler.execute_with_retry(
                self.client.messages.create,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                tools=[tool],
                tool_choice={"type": "tool", "name": RESULT_TOOL_NAME},
            )
        except Exception as e:
            raise GenerationError(f"LLM call failed: {e}") from e

        # Track token usage
        usage = getattr(message, "usage", None)
        if usage is not None:
            self.total_tokens_used += usage.input_tokens + usage.output_tokens

        payload = self._payload_from_message(message)

        try:
            return response_model.model_validate(payload)
        except ValidationError as e:
            raise GenerationError(
                f"Response did not match {response_model.__name__}: {e}"
            ) from e

    def _payload_from_message(self, message: Any) -> Any:
        """Pull the tool arguments, or JSON embedded in text, from a reply."""
        text_parts = []
        for block in message.content:
            block_type = getattr(block, "type", None)
            if block_type == "tool_use" and block.name == RESULT_TOOL_NAME:
                return block.input
            if block_type == "text":
                text_parts.append(block.text)

        response_text = "\n".join(text_parts)
        try:
            return extract_json(response_text)
        except json.JSONDecodeError as e:
            logger.error(
                f"Could not extract valid JSON from response. "
                f"First 500 chars: {response_text[:500]}"
            )
            raise GenerationError("Reply contained no structured result") from e
