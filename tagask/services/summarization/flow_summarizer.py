"""
Power Automate flow summarizer.
POSTs the transcript as {"messages": [...]} to an HTTP-triggered flow and reads
predictionOutput.text from the reply.
"""

import httpx

from tagask.infrastructure.observability.logging import get_logger
from tagask.services.summarization.base import SummarizerError

logger = get_logger(__name__)


class FlowSummarizer:
    def __init__(self, flow_url: str, api_key: str | None = None, timeout: float = 60.0):
        if not flow_url:
            raise SummarizerError("SUMMARY_FLOW_URL not configured", recoverable=False)
        self.flow_url = flow_url
        self.api_key = api_key
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def summarize(self, transcript_lines: list[str]) -> str:
        """
        Summarize one transcript in a single call.

        Returns:
            str: Summary text, or the raw reply when it has no predictionOutput.text

        Raises:
            SummarizerError: If the flow cannot be reached or answers non-2xx
        """
        logger.info("Calling summary flow", line_count=len(transcript_lines))

        try:
            response = await self._client.post(
                self.flow_url, headers=self._headers(), json={"messages": transcript_lines}
            )
        except httpx.RequestError as e:
            logger.error("Summary flow unreachable", error=str(e))
            raise SummarizerError("Summary flow unreachable", api_error=str(e)) from e

        if not response.is_success:
            logger.error(
                "Summary flow failed",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise SummarizerError(
                f"Summary flow returned HTTP {response.status_code}",
                api_error=response.text[:200] if response.text else None,
                recoverable=response.status_code >= 500,
                display_message=(
                    "Failed to generate summary via Power Automate. "
                    f"Status: {response.status_code}"
                ),
            )

        try:
            data = response.json()
        except ValueError:
            return response.text

        prediction = data.get("predictionOutput") if isinstance(data, dict) else None
        if isinstance(prediction, dict) and "text" in prediction:
            if not prediction.get("text"):
                raise SummarizerError(
                    "Summary flow returned empty text", display_message="No summary text returned."
                )
            return prediction["text"]

        # Flow answered with some other shape; hand back what it said
        return response.text
