"""
Summarization bridge: conversation id to summary text.

Fetches the chat with the caller's token, renders it oldest first as
"<sender>: <content>" lines and hands the whole transcript to the configured
summarizer in one call. The bridge never raises; failures come back as a
SummaryResult with ok=False and a fixed message the UI can show as-is.
"""

from dataclasses import dataclass

from tagask.config import settings
from tagask.infrastructure.observability.logging import get_logger
from tagask.models.domain.directory_domain import ConversationMessage
from tagask.services.graph.gateway import DirectoryGateway
from tagask.services.summarization.base import Summarizer, SummarizerError

logger = get_logger(__name__)

NOTHING_TO_SUMMARIZE = "No conversation content found to summarize."
SUMMARY_FAILED = "An error occurred while generating the summary."


@dataclass(frozen=True)
class SummaryResult:
    """Text to show the caller; only ok results may be stored."""

    text: str
    ok: bool


def build_transcript(messages: list[ConversationMessage]) -> list[str]:
    """Graph returns newest first; transcripts read oldest first."""
    return [message.to_transcript_line() for message in reversed(messages) if message.has_content()]


class SummarizationBridge:
    def __init__(self, gateway: DirectoryGateway, summarizer: Summarizer):
        self._gateway = gateway
        self._summarizer = summarizer

    async def close(self) -> None:
        await self._summarizer.close()

    async def summarize(self, conversation_id: str, caller_token: str) -> SummaryResult:
        try:
            messages = await self._gateway.get_conversation_messages(caller_token, conversation_id)
            lines = build_transcript(messages)

            if not lines:
                logger.info("Nothing to summarize", conversation_id=conversation_id)
                return SummaryResult(NOTHING_TO_SUMMARIZE, ok=False)

            summary = await self._summarizer.summarize(lines)
            logger.info(
                "Conversation summarized",
                conversation_id=conversation_id,
                line_count=len(lines),
                summary_length=len(summary),
            )
            return SummaryResult(summary, ok=True)

        except SummarizerError as e:
            logger.error(
                "Summarizer failed",
                conversation_id=conversation_id,
                error=str(e),
                api_error=e.api_error,
            )
            return SummaryResult(e.display_message or SUMMARY_FAILED, ok=False)

        except Exception as e:
            logger.error(
                "Summary generation failed",
                conversation_id=conversation_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return SummaryResult(SUMMARY_FAILED, ok=False)


def build_summarizer() -> Summarizer:
    """
    Build the summarizer selected by SUMMARIZER_BACKEND.

    Raises:
        SummarizerError: Unknown backend or missing configuration
    """
    backend = settings.SUMMARIZER_BACKEND.lower()

    if backend == "flow":
        from tagask.services.summarization.flow_summarizer import FlowSummarizer

        return FlowSummarizer(
            settings.SUMMARY_FLOW_URL,
            api_key=settings.SUMMARY_FLOW_API_KEY,
            timeout=settings.SUMMARY_TIMEOUT_SECONDS,
        )

    if backend == "openai":
        from tagask.services.summarization.openai_summarizer import OpenAISummarizer

        return OpenAISummarizer()

    raise SummarizerError(f"Unknown summarizer backend: {backend}", recoverable=False)
