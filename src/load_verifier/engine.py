"""Verification engine: turns three check outcomes into one verdict.

Checks run in a fixed order:

1. credit    (local, no I/O)
2. registry  (FMCSA lookup, the only network call)
3. freshness (local, no I/O)

Aggregation rules:
- The first REJECT ends the run; later checks are not evaluated. In
  particular, no registry call is made for a load whose credit score
  already failed.
- WARN reasons accumulate in check order.
- No rejection and at least one warning → NEEDS_REVIEW, otherwise APPROVED.

The engine never raises. An unexpected exception inside a check means
there is not enough information to approve, so it becomes NEEDS_REVIEW
with a system-error reason. Only an explicit business rule can reject.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any, Protocol

from load_verifier.checks import check_credit_score, check_freshness, check_registry
from load_verifier.config import VerificationConfig
from load_verifier.fmcsa_client import RegistryLookup
from load_verifier.models import (
    BatchItem,
    CheckOutcome,
    Disposition,
    LoadOffer,
    VerificationResult,
)

logger = logging.getLogger(__name__)


class CarrierRegistry(Protocol):
    """Anything that can look up a carrier (normally an FMCSAClient)."""

    async def lookup(self, mc_number: str) -> RegistryLookup: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationEngine:
    """Stateless decision engine for load offers.

    One instance can serve any number of concurrent verifications: every
    call builds its own reasons and metadata, and the configuration and
    registry client are only read.

    Args:
        registry: Carrier registry used for the authorization check.
        config: Thresholds for the credit and freshness checks.
        clock: Returns the current (timezone-aware) time.
    """

    def __init__(
        self,
        registry: CarrierRegistry,
        config: VerificationConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.registry = registry
        self.config = config or VerificationConfig()
        self.clock = clock

        self._checks: list[
            tuple[str, Callable[[LoadOffer], Awaitable[CheckOutcome]]]
        ] = [
            ("credit", self._credit),
            ("registry", self._registry),
            ("freshness", self._freshness),
        ]

    # --- Checks, in evaluation order ---

    async def _credit(self, offer: LoadOffer) -> CheckOutcome:
        return check_credit_score(offer.credit_score, self.config)

    async def _registry(self, offer: LoadOffer) -> CheckOutcome:
        lookup = await self.registry.lookup(offer.broker_mc)
        return check_registry(lookup)

    async def _freshness(self, offer: LoadOffer) -> CheckOutcome:
        return check_freshness(offer.posted_at, self.clock(), self.config)

    # --- Public API ---

    async def verify(self, offer: LoadOffer) -> VerificationResult:
        """Verify one load offer.

        Args:
            offer: The load offer. Expected to be validated already, but a
                malformed offer degrades to NEEDS_REVIEW instead of raising.

        Returns:
            The verdict, with per-check details in its metadata.
        """
        reasons: list[str] = []
        metadata: dict[str, Any] = {}

        try:
            for name, check in self._checks:
                outcome = await check(offer)
                metadata[name] = {"status": outcome.status, **outcome.evidence}

                if outcome.disposition is Disposition.REJECT:
                    reason = outcome.reason or f"{name} check failed"
                    logger.info(
                        "Load %s rejected by %s check: %s",
                        getattr(offer, "load_id", "?"),
                        name,
                        reason,
                    )
                    return VerificationResult.rejected(reason, metadata)

                if outcome.disposition is Disposition.WARN:
                    reasons.append(outcome.reason or f"{name} check raised a warning")
        except Exception as exc:
            logger.exception(
                "Verification error for load %s", getattr(offer, "load_id", "?")
            )
            return VerificationResult.needs_review(
                [f"Verification system error: {str(exc) or type(exc).__name__}"],
                metadata,
            )

        if reasons:
            return VerificationResult.needs_review(reasons, metadata)
        return VerificationResult.approved(metadata)

    async def verify_many(self, offers: Sequence[LoadOffer]) -> list[BatchItem]:
        """Verify several load offers concurrently.

        Results come back in the same order as the input. Each offer is
        isolated: a failure while verifying one never affects the others.
        """
        results = await asyncio.gather(*(self._verify_isolated(o) for o in offers))
        return list(results)

    async def _verify_isolated(self, offer: LoadOffer) -> BatchItem:
        load_id = getattr(offer, "load_id", None)
        if load_id is not None:
            load_id = str(load_id)
        try:
            result = await self.verify(offer)
        except Exception as exc:
            logger.exception("Batch verification error for load %s", load_id)
            result = VerificationResult.needs_review(
                [f"Verification error: {str(exc) or type(exc).__name__}"]
            )
        return BatchItem(load_id=load_id, result=result)
