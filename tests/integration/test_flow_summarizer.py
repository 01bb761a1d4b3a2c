import httpx
import pytest

from tagask.services.summarization.base import SummarizerError
from tagask.services.summarization.flow_summarizer import FlowSummarizer

FLOW_URL = "https://prod-00.westus.logic.azure.com/workflows/abc/triggers/manual/paths/invoke"


@pytest.mark.asyncio
async def test_reads_prediction_output_text(httpx_mock):
    summarizer = FlowSummarizer(FLOW_URL, api_key="flow-key")
    httpx_mock.add_response(
        method="POST",
        url=FLOW_URL,
        json={"predictionOutput": {"text": "Ann asked about deploys."}},
    )

    summary = await summarizer.summarize(["Ann: How do we deploy?"])
    await summarizer.close()

    request = httpx_mock.get_request()
    assert summary == "Ann asked about deploys."
    assert request.headers["Authorization"] == "Bearer flow-key"
    assert b"Ann: How do we deploy?" in request.read()


@pytest.mark.asyncio
async def test_falls_back_to_raw_body(httpx_mock):
    summarizer = FlowSummarizer(FLOW_URL)
    httpx_mock.add_response(method="POST", url=FLOW_URL, text="plain summary")

    summary = await summarizer.summarize(["Ann: hi"])
    await summarizer.close()

    assert summary == "plain summary"
    assert "Authorization" not in httpx_mock.get_request().headers


@pytest.mark.asyncio
async def test_non_success_reports_status(httpx_mock):
    summarizer = FlowSummarizer(FLOW_URL)
    httpx_mock.add_response(method="POST", url=FLOW_URL, status_code=500, text="boom")

    with pytest.raises(SummarizerError) as exc:
        await summarizer.summarize(["Ann: hi"])
    await summarizer.close()

    assert exc.value.display_message == (
        "Failed to generate summary via Power Automate. Status: 500"
    )
    assert exc.value.api_error == "boom"


@pytest.mark.asyncio
async def test_transport_error_raises(httpx_mock):
    summarizer = FlowSummarizer(FLOW_URL)
    httpx_mock.add_exception(httpx.ConnectError("unreachable"), url=FLOW_URL)

    with pytest.raises(SummarizerError):
        await summarizer.summarize(["Ann: hi"])
    await summarizer.close()


@pytest.mark.asyncio
async def test_empty_prediction_text_is_a_failure(httpx_mock):
    summarizer = FlowSummarizer(FLOW_URL)
    httpx_mock.add_response(method="POST", url=FLOW_URL, json={"predictionOutput": {"text": ""}})

    with pytest.raises(SummarizerError) as exc:
        await summarizer.summarize(["Ann: hi"])
    await summarizer.close()

    assert exc.value.display_message == "No summary text returned."
