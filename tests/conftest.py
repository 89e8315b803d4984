"""Pytest fixtures for testing."""

from typing import Any

import pytest
from fastapi.testclient import TestClient

from reelanchor.api.main import app
from reelanchor.services import TranscriptIndex, build_transcript_index


@pytest.fixture
def sample_segments() -> list[dict[str, Any]]:
    """Ten-segment lecture transcript (text, start, duration)."""
    return [
        {"text": "Welcome back to the channel, everyone.", "start": 0.0, "duration": 4.0},
        {"text": "Today we're talking about how memory works.", "start": 4.0, "duration": 4.0},
        {"text": "The hippocampus is where new memories form.", "start": 8.0, "duration": 5.0},
        {"text": "Sleep plays a huge role in consolidating them.", "start": 13.0, "duration": 5.0},
        {"text": "Without deep sleep, recall drops dramatically.", "start": 18.0, "duration": 4.0},
        {"text": "Let's look at a study from 2019.", "start": 22.0, "duration": 3.0},
        {"text": "Researchers tracked two hundred students for a year.", "start": 25.0, "duration": 5.0},
        {"text": "The ones who slept eight hours scored higher.", "start": 30.0, "duration": 4.0},
        {"text": "That's a twenty percent difference in test results.", "start": 34.0, "duration": 5.0},
        {"text": "So prioritize sleep before your next exam.", "start": 39.0, "duration": 4.0},
    ]


@pytest.fixture
def sample_index(sample_segments) -> TranscriptIndex:
    """Index over the sample transcript."""
    return build_transcript_index(sample_segments)


@pytest.fixture
def fox_segments() -> list[dict[str, Any]]:
    """Two short segments; quotes often straddle the boundary."""
    return [
        {"text": "the quick brown fox jumps", "start": 0.0, "duration": 3.0},
        {"text": "over the lazy dog", "start": 3.0, "duration": 2.0},
    ]


@pytest.fixture
def client() -> TestClient:
    """Provide an HTTP client for the API."""
    return TestClient(app)
