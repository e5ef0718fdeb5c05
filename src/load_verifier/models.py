"""Data types shared by the checks, the engine, and the HTTP layer.

Pydantic models describe everything that crosses the API boundary (the
incoming load offer, the carrier record, the final verdict). The per-check
result is a plain frozen dataclass because it never leaves the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LoadOffer(BaseModel):
    """A load offer as posted by a broker.

    Only broker_mc, credit_score and posted_at feed the decision. The
    commercial fields are carried along for audit purposes.
    """

    model_config = ConfigDict(frozen=True)

    load_id: str = Field(min_length=1)
    broker_name: str = Field(min_length=1)
    broker_mc: str = Field(min_length=1)  # FMCSA MC number, the registry key
    credit_score: int = Field(ge=0, le=100)
    posted_at: datetime
    pickup_city: str | None = None
    delivery_city: str | None = None
    rate: float | None = None
    equipment: str | None = None


class CarrierRecord(BaseModel):
    """A carrier as described by the FMCSA registry."""

    model_config = ConfigDict(frozen=True)

    mc_number: str
    legal_name: str = "Unknown"
    status: str = "UNKNOWN"  # Raw allowedToOperate code ("Y", "N", ...)
    allowed_to_operate: bool = False
    out_of_service: bool = False
    carrier_operation: str = "Unknown"


class Disposition(str, Enum):
    """How a single check feeds into the final decision."""

    PASS = "PASS"
    WARN = "WARN"
    REJECT = "REJECT"


@dataclass(frozen=True)
class CheckOutcome:
    """Result of one check.

    Attributes:
        disposition: PASS, WARN or REJECT.
        status: Short label recorded in the result metadata (e.g. "SUSPICIOUS").
        reason: Human-readable explanation. Always set for WARN and REJECT.
        evidence: Check-specific details recorded in the result metadata.
    """

    disposition: Disposition
    status: str
    reason: str | None = None
    evidence: dict[str, Any] = field(default_factory=dict)


class VerificationStatus(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NEEDS_REVIEW = "NEEDS_REVIEW"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationResult(BaseModel):
    """The final verdict for one load offer.

    Use the approved(), rejected() and needs_review() constructors rather
    than building one directly; they keep the reasons consistent with
    the status.
    """

    model_config = ConfigDict(frozen=True)

    verification_status: VerificationStatus
    reasons: list[str] = Field(default_factory=list)
    verified_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def approved(cls, metadata: dict[str, Any] | None = None) -> VerificationResult:
        return cls(
            verification_status=VerificationStatus.APPROVED,
            reasons=[],
            metadata=metadata or {},
        )

    @classmethod
    def rejected(
        cls, reason: str, metadata: dict[str, Any] | None = None
    ) -> VerificationResult:
        return cls(
            verification_status=VerificationStatus.REJECTED,
            reasons=[reason],
            metadata=metadata or {},
        )

    @classmethod
    def needs_review(
        cls, reasons: list[str], metadata: dict[str, Any] | None = None
    ) -> VerificationResult:
        if not reasons:
            raise ValueError("NEEDS_REVIEW requires at least one reason")
        return cls(
            verification_status=VerificationStatus.NEEDS_REVIEW,
            reasons=list(reasons),
            metadata=metadata or {},
        )


class BatchItem(BaseModel):
    """One entry of a batch verification, in the same position as its input."""

    load_id: str | None
    result: VerificationResult
