"""FastAPI server: the HTTP entry point for load verification.

Endpoints:

- GET  /health            (simple check that the server is running)
- POST /api/verify        (verify a single load offer)
- POST /api/verify/batch  (verify up to MAX_BATCH_SIZE load offers at once)

Both verify endpoints require the X-API-Key header (see require_api_key).
Input validation happens here, at the boundary; the engine itself assumes
a well-formed LoadOffer.

Run locally with:
    uvicorn load_verifier.app:app --reload
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from load_verifier.config import (
    ALLOWED_ORIGINS,
    API_KEY,
    APP_ENV,
    LOG_LEVEL,
    MAX_BATCH_SIZE,
    VerificationConfig,
)
from load_verifier.engine import VerificationEngine
from load_verifier.fmcsa_client import close_client, get_client
from load_verifier.models import (
    BatchItem,
    LoadOffer,
    VerificationResult,
    VerificationStatus,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await close_client()


app = FastAPI(
    title="Load Verification Agent",
    description="Approve, reject, or flag freight load offers for review",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    allow_credentials=True,
)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
# Every error response has the same shape: {"error": ..., "message": ...}


class APIError(Exception):
    """An error that should be returned to the client as-is."""

    def __init__(self, status_code: int, error: str, message: str) -> None:
        self.status_code = status_code
        self.error = error
        self.message = message
        super().__init__(message)


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid input", "message": _describe_errors(exc.errors())},
    )


def _describe_errors(errors: Any) -> str:
    """Flatten pydantic error dicts into one readable line."""
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}" if loc else err["msg"])
    return "; ".join(parts) or "Invalid request body"


@app.middleware("http")
async def log_requests(request: Request, call_next: Any) -> Any:
    logger.info("%s %s", request.method, request.url.path)
    return await call_next(request)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
    """Reject requests without the configured X-API-Key.

    When API_KEY is unset in development, authentication is skipped so the
    service can be tried out locally without any setup.

    Raises:
        APIError: 401 if the key is missing or wrong.
    """
    if not API_KEY and APP_ENV == "development":
        logger.warning("API_KEY not set - skipping authentication (development only)")
        return

    if not x_api_key or x_api_key != API_KEY:
        raise APIError(401, "Unauthorized", "Invalid or missing API key")


def get_engine() -> VerificationEngine:
    """Build an engine around the shared FMCSA client."""
    return VerificationEngine(get_client(), VerificationConfig.from_env())


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class BatchRequest(BaseModel):
    """Body of POST /api/verify/batch.

    The loads are kept as raw objects so each one can be validated on its
    own; one malformed load must not fail the whole batch.
    """

    loads: list[Any]


class BatchResponse(BaseModel):
    total: int
    approved: int
    rejected: int
    needs_review: int
    results: list[BatchItem]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint. Returns 200 if the server is running."""
    return {
        "status": "healthy",
        "service": "load-verification-agent",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": APP_ENV,
    }


@app.post(
    "/api/verify",
    response_model=VerificationResult,
    dependencies=[Depends(require_api_key)],
)
async def verify(
    load: LoadOffer,
    engine: VerificationEngine = Depends(get_engine),
) -> VerificationResult:
    """Verify a single load offer and return the verdict."""
    logger.info(
        "Processing load %s from %s (MC: %s)",
        load.load_id,
        load.broker_name,
        load.broker_mc,
    )
    result = await engine.verify(load)
    logger.info(
        "Load %s result: %s - %d reasons",
        load.load_id,
        result.verification_status.value,
        len(result.reasons),
    )
    return result


@app.post(
    "/api/verify/batch",
    response_model=BatchResponse,
    dependencies=[Depends(require_api_key)],
)
async def verify_batch(
    request: BatchRequest,
    engine: VerificationEngine = Depends(get_engine),
) -> BatchResponse:
    """Verify several load offers concurrently.

    Results are returned in input order. A load that fails validation is
    reported as NEEDS_REVIEW with the validation message instead of
    failing the request.
    """
    if len(request.loads) > MAX_BATCH_SIZE:
        raise APIError(
            400,
            "Invalid input",
            f"Maximum {MAX_BATCH_SIZE} loads per batch request",
        )

    logger.info("Processing batch of %d loads", len(request.loads))

    items: list[BatchItem | None] = []
    valid: list[LoadOffer] = []
    for raw in request.loads:
        try:
            valid.append(LoadOffer.model_validate(raw))
            items.append(None)  # Filled in once the engine has run
        except ValidationError as exc:
            load_id = raw.get("load_id") if isinstance(raw, dict) else None
            items.append(
                BatchItem(
                    load_id=str(load_id) if load_id is not None else None,
                    result=VerificationResult.needs_review(
                        [f"Invalid input: {_describe_errors(exc.errors())}"]
                    ),
                )
            )

    verified = iter(await engine.verify_many(valid))
    results = [item if item is not None else next(verified) for item in items]

    response = BatchResponse(
        total=len(results),
        approved=_count(results, VerificationStatus.APPROVED),
        rejected=_count(results, VerificationStatus.REJECTED),
        needs_review=_count(results, VerificationStatus.NEEDS_REVIEW),
        results=results,
    )
    logger.info(
        "Batch completed: %d approved, %d rejected, %d needs review",
        response.approved,
        response.rejected,
        response.needs_review,
    )
    return response


def _count(results: list[BatchItem], status: VerificationStatus) -> int:
    return sum(1 for item in results if item.result.verification_status is status)
