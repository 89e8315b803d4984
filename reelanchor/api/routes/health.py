"""Health check endpoint."""

from fastapi import APIRouter

from reelanchor.api.response import ApiResponse, success_response

router = APIRouter(tags=["System"])


@router.get("/health", response_model=ApiResponse)
async def health_check() -> dict:
    """Return system health status."""
    return success_response({"status": "ok"})
