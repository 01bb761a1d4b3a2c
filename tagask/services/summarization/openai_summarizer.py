# tagask/services/summarization/openai_summarizer.py
"""
OpenAI summarizer for question conversations.
Condenses a chat transcript into a short summary of the question and the help given.
"""

import asyncio

import openai
from openai import AsyncOpenAI

from tagask.config import settings
from tagask.infrastructure.observability.logging import get_logger
from tagask.services.summarization.base import SummarizerError

logger = get_logger(__name__)

SYSTEM_MESSAGE = """### Role
You summarize a Microsoft Teams chat in which a colleague asked a question of people
with a given skill tag.

### Output Requirements
- Plain text, no markdown headings
- At most 5 short sentences
- State the question, the answer or advice given, and anything left open
- Refer to people by the names shown in the transcript
"""


class OpenAISummarizer:
    """Summarizer backed by the OpenAI chat completions API."""

    def __init__(self, client: AsyncOpenAI | None = None, max_retries: int = 3):
        self.max_retries = max_retries
        self.client = client or self._initialize_client()
        logger.info("OpenAI summarizer initialized", model=settings.OPENAI_MODEL)

    def _initialize_client(self) -> AsyncOpenAI:
        """Initialize OpenAI async client with configuration."""
        if not settings.OPENAI_API_KEY:
            raise SummarizerError("OPENAI_API_KEY not configured in settings", recoverable=False)

        return AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=settings.SUMMARY_TIMEOUT_SECONDS,
        )

    async def close(self) -> None:
        await self.client.close()

    def _build_user_message(self, transcript_lines: list[str]) -> str:
        transcript = "\n".join(transcript_lines)
        return f"""### Transcript (oldest first)

{transcript}"""

    async def summarize(self, transcript_lines: list[str]) -> str:
        """
        Summarize a transcript with retry on rate limits and timeouts.

        Raises:
            SummarizerError: If every attempt fails or the reply is empty
        """
        last_error = None

        for attempt in range(self.max_retries):
            try:
                logger.debug(
                    "Calling OpenAI API for summary",
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    model=settings.OPENAI_MODEL,
                )

                response = await self.client.chat.completions.create(
                    model=settings.OPENAI_MODEL,
                    messages=[
                        {"role": "system", "content": SYSTEM_MESSAGE},
                        {"role": "user", "content": self._build_user_message(transcript_lines)},
                    ],
                    max_tokens=settings.OPENAI_MAX_TOKENS,
                    temperature=settings.OPENAI_TEMPERATURE,
                )

                if not response.choices or not response.choices[0].message.content:
                    raise SummarizerError("Empty response from OpenAI API")

                result = response.choices[0].message.content.strip()

                logger.info(
                    "OpenAI summary generated",
                    attempt=attempt + 1,
                    response_length=len(result),
                    usage_tokens=response.usage.total_tokens if response.usage else 0,
                )
                return result

            except openai.RateLimitError as e:
                last_error = e
                wait_time = min(2**attempt, 30)  # Exponential backoff, max 30s

                logger.warning(
                    "OpenAI rate limit hit, retrying",
                    attempt=attempt + 1,
                    wait_time=wait_time,
                    error=str(e),
                )

                if attempt < self.max_retries - 1:
                    await asyncio.sleep(wait_time)

            except openai.APIConnectionError as e:
                last_error = e
                logger.warning(
                    "OpenAI API connection error, retrying", attempt=attempt + 1, error=str(e)
                )

            except openai.APIStatusError as e:
                last_error = e
                # Don't retry on client errors (4xx)
                if 400 <= e.status_code < 500:
                    logger.error("OpenAI client error (not retrying)", error=str(e))
                    break

                logger.warning("OpenAI API error, retrying", attempt=attempt + 1, error=str(e))

            except SummarizerError as e:
                last_error = e
                logger.warning("OpenAI returned no summary, retrying", attempt=attempt + 1)

        logger.error(
            "OpenAI summary failed after all retries",
            max_retries=self.max_retries,
            final_error=str(last_error),
        )
        raise SummarizerError(
            f"OpenAI API failed after {self.max_retries} attempts",
            api_error=str(last_error),
        ) from last_error
