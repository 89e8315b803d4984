"""FastAPI application setup."""

import logging
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reelanchor.api.exceptions import ValidationError
from reelanchor.api.response import error_response
from reelanchor.api.routes import alignment, citations, health
from reelanchor.services import AlignmentTimeoutError

logger = logging.getLogger(__name__)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "REELANCHOR_CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    ).split(",")
    if origin.strip()
]


app = FastAPI(
    title="ReelAnchor API",
    description="Anchors LLM-generated quotes and citations to exact transcript timestamps",
    version="1.0.0",
)

# CORS middleware for the web frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle validation errors."""
    return JSONResponse(
        status_code=400,
        content=error_response("VALIDATION_ERROR", exc.message),
    )


@app.exception_handler(AlignmentTimeoutError)
async def alignment_timeout_handler(request: Request, exc: AlignmentTimeoutError) -> JSONResponse:
    """Handle batches that exceeded their time budget."""
    logger.warning(f"Alignment timed out: {exc}")
    return JSONResponse(
        status_code=504,
        content=error_response(
            "ALIGNMENT_TIMEOUT",
            "Quote alignment took too long. Try fewer quotes per request.",
        ),
    )


# Register routes
app.include_router(health.router)
app.include_router(alignment.router, prefix="/api")
app.include_router(citations.router, prefix="/api")
