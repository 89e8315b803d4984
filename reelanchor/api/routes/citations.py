"""Chat citation endpoint.

Provides endpoints for:
- POST /extract-citations: Turn [MM:SS] tokens in a chat answer into
  numbered citations
"""

from typing import Annotated

from fastapi import APIRouter
from pydantic import BaseModel, Field

from reelanchor.api.response import ApiResponse
from reelanchor.api.validation import validate_transcript
from reelanchor.models import CitationExtraction, TranscriptSegment
from reelanchor.services import extract_citations

router = APIRouter(tags=["Citations"])


class ExtractCitationsRequest(BaseModel):
    """Request body for citation extraction."""

    answer: Annotated[str, Field(max_length=100000)]
    transcript: list[TranscriptSegment]


@router.post(
    "/extract-citations",
    response_model=CitationExtraction,
    responses={400: {"model": ApiResponse, "description": "Invalid transcript"}},
)
async def extract_citations_endpoint(request: ExtractCitationsRequest) -> CitationExtraction:
    """Rewrite an answer's timestamp tokens as [n] citation markers.

    - Tokens whose time falls outside every segment are removed
    - Repeated timestamps share one citation number
    """
    validate_transcript(request.transcript)
    return extract_citations(request.answer, request.transcript)
