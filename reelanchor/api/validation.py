"""Request-level checks shared by the alignment routes."""

import os

from reelanchor.models import TranscriptSegment

from .exceptions import TooManyQuotesError, ValidationError

MAX_QUOTES_PER_REQUEST = int(os.environ.get("REELANCHOR_MAX_QUOTES_PER_REQUEST", "200"))

# Caption tracks occasionally repeat a start time; allow a little jitter
_ORDER_TOLERANCE_SECONDS = 0.5


def validate_transcript(segments: list[TranscriptSegment]) -> None:
    """Reject transcripts whose segments are not in chronological order."""
    for idx in range(1, len(segments)):
        if segments[idx].start + _ORDER_TOLERANCE_SECONDS < segments[idx - 1].start:
            raise ValidationError(
                f"Transcript segments must be ordered by start time "
                f"(segment {idx} starts before segment {idx - 1})"
            )


def validate_quote_count(count: int) -> None:
    """Cap the number of quotes aligned in one request."""
    if count > MAX_QUOTES_PER_REQUEST:
        raise TooManyQuotesError(count, MAX_QUOTES_PER_REQUEST)
