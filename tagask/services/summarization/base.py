from typing import Protocol


class SummarizerError(Exception):
    """Raised when the external summarizer cannot produce a summary."""

    def __init__(
        self,
        message: str,
        api_error: str | None = None,
        recoverable: bool = True,
        display_message: str | None = None,
    ):
        super().__init__(message)
        self.api_error = api_error
        self.recoverable = recoverable
        # Text safe to show the user in place of a summary
        self.display_message = display_message


class Summarizer(Protocol):
    async def summarize(self, transcript_lines: list[str]) -> str: ...

    async def close(self) -> None: ...
