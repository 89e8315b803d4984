"""Quote alignment endpoints.

Provides endpoints for:
- POST /align-quotes: Anchor a flat list of quotes to transcript spans
- POST /process-quotes: Anchor each highlight-reel topic's quotes
"""

from typing import Any, Union

from fastapi import APIRouter
from pydantic import BaseModel, Field

from reelanchor.api.response import ApiResponse
from reelanchor.api.validation import validate_quote_count, validate_transcript
from reelanchor.models import AlignedTopic, Quote, ResolvedSpan, TopicQuotes, TranscriptSegment
from reelanchor.services import align_quotes_async, align_topics_async

router = APIRouter(tags=["Alignment"])

# Domain errors come back in the standard envelope
ERROR_RESPONSES = {
    400: {"model": ApiResponse, "description": "Invalid transcript or too many quotes"},
    504: {"model": ApiResponse, "description": "No quote finished within the time budget"},
}


class AlignQuotesRequest(BaseModel):
    """Request body for quote alignment."""

    transcript: list[TranscriptSegment]
    # Malformed LLM quotes are skipped during alignment, not rejected here
    quotes: list[Union[Quote, dict[str, Any], str]]
    with_context: bool = Field(
        default=True,
        description="Widen spans by a few segments for viewing context",
    )
    fallback_to_timestamp: bool = Field(
        default=False,
        description="Use the quote's stated range when its text cannot be found",
    )


class AlignQuotesResponse(BaseModel):
    """Response body for quote alignment."""

    spans: list[ResolvedSpan]


class ProcessQuotesRequest(BaseModel):
    """Request body for highlight-reel processing."""

    transcript: list[TranscriptSegment]
    topics: list[Union[TopicQuotes, dict[str, Any]]]


class ProcessQuotesResponse(BaseModel):
    """Response body for highlight-reel processing."""

    topics: list[AlignedTopic]


def _quote_count(topic: Union[TopicQuotes, dict[str, Any]]) -> int:
    quotes = topic.quotes if isinstance(topic, TopicQuotes) else topic.get("quotes")
    return len(quotes) if isinstance(quotes, list) else 0


@router.post("/align-quotes", response_model=AlignQuotesResponse, responses=ERROR_RESPONSES)
async def align_quotes_endpoint(request: AlignQuotesRequest) -> AlignQuotesResponse:
    """Anchor LLM quotes to exact transcript spans.

    - Builds the transcript index once for the whole batch
    - Matches quotes concurrently; unmatched quotes are omitted
    - Quotes still running at the time budget are dropped, the rest returned
    - Merges spans less than a few seconds apart
    - Every span lasts at least the minimum viewable duration
    """
    validate_transcript(request.transcript)
    validate_quote_count(len(request.quotes))

    spans = await align_quotes_async(
        request.transcript,
        request.quotes,
        with_context=request.with_context,
        fallback_to_timestamp=request.fallback_to_timestamp,
    )
    return AlignQuotesResponse(spans=spans)


@router.post("/process-quotes", response_model=ProcessQuotesResponse, responses=ERROR_RESPONSES)
async def process_quotes(request: ProcessQuotesRequest) -> ProcessQuotesResponse:
    """Anchor every topic's quotes and compute each topic's total duration.

    All quotes share one time budget; quotes that miss it are left out of
    their topic's spans.
    """
    validate_transcript(request.transcript)
    validate_quote_count(sum(_quote_count(topic) for topic in request.topics))

    topics = await align_topics_async(request.transcript, request.topics)
    return ProcessQuotesResponse(topics=topics)
