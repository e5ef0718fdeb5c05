"""Tests for the verification engine.

The FMCSA client is replaced by an AsyncMock, and the engine gets a fixed
clock, so every scenario is deterministic and offline.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from load_verifier.config import VerificationConfig
from load_verifier.engine import VerificationEngine
from load_verifier.fmcsa_client import FMCSAClient, RegistryLookup, RegistryStatus
from load_verifier.models import (
    CarrierRecord,
    Disposition,
    LoadOffer,
    VerificationStatus,
)

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

SKIPPED = RegistryLookup(
    status=RegistryStatus.SKIPPED,
    disposition=Disposition.WARN,
    reason="FMCSA validation unavailable (API key not configured)",
)
ACTIVE = RegistryLookup(
    status=RegistryStatus.ACTIVE,
    disposition=Disposition.PASS,
    carrier=CarrierRecord(
        mc_number="123456",
        legal_name="Test Logistics LLC",
        status="Y",
        allowed_to_operate=True,
    ),
)


def _offer(minutes_ago: int = 10, **overrides: Any) -> LoadOffer:
    """Build a valid load offer posted `minutes_ago` before NOW."""
    fields: dict[str, Any] = {
        "load_id": "test-load-001",
        "broker_name": "Test Logistics",
        "broker_mc": "123456",
        "credit_score": 85,
        "posted_at": NOW - timedelta(minutes=minutes_ago),
        "pickup_city": "Chicago, IL",
        "delivery_city": "Atlanta, GA",
        "rate": 2400,
        "equipment": "Dry Van",
    }
    fields.update(overrides)
    return LoadOffer(**fields)


def _registry(lookup: RegistryLookup = ACTIVE) -> AsyncMock:
    registry = AsyncMock()
    registry.lookup.return_value = lookup
    return registry


def _engine(registry: AsyncMock, **config: Any) -> VerificationEngine:
    return VerificationEngine(
        registry, VerificationConfig(**config), clock=lambda: NOW
    )


# --- Concrete scenarios (no FMCSA key configured) ---


class TestScenariosWithoutRegistryKey:
    """The engine wired to a real FMCSAClient with no key (skipped mode).

    A skipped lookup is a warning, so a load that passes everything else
    lands in NEEDS_REVIEW rather than APPROVED.
    """

    @pytest_asyncio.fixture
    async def engine(self) -> Any:
        client = FMCSAClient(api_base="https://registry.test/carriers", api_key="")
        yield VerificationEngine(client, VerificationConfig(), clock=lambda: NOW)
        await client.close()

    @pytest.mark.asyncio
    async def test_low_credit_rejected(self, engine: VerificationEngine) -> None:
        result = await engine.verify(_offer(credit_score=81))
        assert result.verification_status is VerificationStatus.REJECTED
        assert len(result.reasons) == 1
        assert "below minimum" in result.reasons[0]

    @pytest.mark.asyncio
    async def test_stale_load_rejected(self, engine: VerificationEngine) -> None:
        result = await engine.verify(_offer(minutes_ago=90))
        assert result.verification_status is VerificationStatus.REJECTED
        assert "too old" in result.reasons[0]

    @pytest.mark.asyncio
    async def test_good_load_needs_review_when_skipped(
        self, engine: VerificationEngine
    ) -> None:
        result = await engine.verify(_offer())
        assert result.verification_status is VerificationStatus.NEEDS_REVIEW
        assert result.reasons == [SKIPPED.reason]
        assert result.metadata["registry"]["status"] == "SKIPPED"


# --- Concrete scenarios with a clean registry ---


@pytest.mark.asyncio
async def test_perfect_load_approved() -> None:
    result = await _engine(_registry()).verify(_offer(credit_score=85, minutes_ago=10))

    assert result.verification_status is VerificationStatus.APPROVED
    assert result.reasons == []
    assert result.metadata["credit"]["status"] == "PASSED"
    assert result.metadata["registry"]["carrier"]["legal_name"] == "Test Logistics LLC"
    assert result.metadata["freshness"]["age_minutes"] == 10
    assert result.verified_at.tzinfo is not None


@pytest.mark.asyncio
async def test_suspicious_credit_needs_review() -> None:
    result = await _engine(_registry()).verify(_offer(credit_score=98))

    assert result.verification_status is VerificationStatus.NEEDS_REVIEW
    assert len(result.reasons) == 1
    assert "suspiciously high" in result.reasons[0]


@pytest.mark.asyncio
async def test_somewhat_stale_needs_review() -> None:
    result = await _engine(_registry()).verify(_offer(minutes_ago=45))

    assert result.verification_status is VerificationStatus.NEEDS_REVIEW
    assert "may be stale" in result.reasons[0]
    assert result.metadata["freshness"]["age_minutes"] == 45


@pytest.mark.asyncio
async def test_warnings_accumulate_in_check_order() -> None:
    result = await _engine(_registry(SKIPPED)).verify(
        _offer(credit_score=99, minutes_ago=40)
    )

    assert result.verification_status is VerificationStatus.NEEDS_REVIEW
    assert len(result.reasons) == 3
    assert "suspiciously high" in result.reasons[0]
    assert result.reasons[1] == SKIPPED.reason
    assert "may be stale" in result.reasons[2]


# --- Short-circuiting ---


@pytest.mark.asyncio
@pytest.mark.parametrize("score", [0, 40, 81])
async def test_credit_rejection_skips_registry(score: int) -> None:
    """No network call once the local credit check has already failed."""
    registry = _registry()

    result = await _engine(registry).verify(_offer(credit_score=score, minutes_ago=90))

    assert result.verification_status is VerificationStatus.REJECTED
    assert "below minimum" in result.reasons[0]
    registry.lookup.assert_not_awaited()
    assert "freshness" not in result.metadata


@pytest.mark.asyncio
async def test_registry_rejection_skips_freshness() -> None:
    lookup = RegistryLookup(
        status=RegistryStatus.NOT_AUTHORIZED,
        disposition=Disposition.REJECT,
        reason="Carrier 123456 (Test Logistics LLC) not authorized to operate",
    )

    result = await _engine(_registry(lookup)).verify(_offer(minutes_ago=45))

    assert result.verification_status is VerificationStatus.REJECTED
    assert result.reasons == [lookup.reason]
    assert "freshness" not in result.metadata


@pytest.mark.asyncio
async def test_rejection_drops_earlier_warnings() -> None:
    """REJECTED carries exactly one reason, even after a warning."""
    result = await _engine(_registry()).verify(_offer(credit_score=99, minutes_ago=90))

    assert result.verification_status is VerificationStatus.REJECTED
    assert len(result.reasons) == 1
    assert "too old" in result.reasons[0]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [RegistryStatus.TIMEOUT, RegistryStatus.ERROR])
async def test_registry_unavailable_never_rejects(status: RegistryStatus) -> None:
    lookup = RegistryLookup(
        status=status,
        disposition=Disposition.WARN,
        reason="FMCSA API error - broker verification incomplete",
    )

    result = await _engine(_registry(lookup)).verify(_offer())

    assert result.verification_status is VerificationStatus.NEEDS_REVIEW
    assert result.metadata["registry"]["status"] == status.value


@pytest.mark.asyncio
async def test_registry_called_with_broker_mc() -> None:
    registry = _registry()
    await _engine(registry).verify(_offer(broker_mc="777777"))
    registry.lookup.assert_awaited_once_with("777777")


# --- System faults ---


@pytest.mark.asyncio
async def test_lookup_exception_needs_review() -> None:
    registry = AsyncMock()
    registry.lookup.side_effect = RuntimeError("registry exploded")

    result = await _engine(registry).verify(_offer())

    assert result.verification_status is VerificationStatus.NEEDS_REVIEW
    assert result.reasons == ["Verification system error: registry exploded"]
    assert result.metadata["credit"]["status"] == "PASSED"


@pytest.mark.asyncio
async def test_malformed_offer_needs_review() -> None:
    """An unvalidated offer degrades instead of raising."""
    offer = LoadOffer.model_construct(
        load_id="bad-1",
        broker_name="Broken",
        broker_mc="123456",
        credit_score=85,
        posted_at="not a timestamp",
    )

    result = await _engine(_registry()).verify(offer)

    assert result.verification_status is VerificationStatus.NEEDS_REVIEW
    assert result.reasons[0].startswith("Verification system error")


@pytest.mark.asyncio
async def test_missing_credit_score_needs_review() -> None:
    offer = LoadOffer.model_construct(load_id="bad-2", credit_score=None)

    result = await _engine(_registry()).verify(offer)

    assert result.verification_status is VerificationStatus.NEEDS_REVIEW


# --- Batches ---


@pytest.mark.asyncio
async def test_verify_many_preserves_order() -> None:
    offers = [
        _offer(load_id="a", credit_score=85),
        _offer(load_id="b", credit_score=50),
        _offer(load_id="c", credit_score=99),
    ]

    items = await _engine(_registry()).verify_many(offers)

    assert [item.load_id for item in items] == ["a", "b", "c"]
    assert [item.result.verification_status for item in items] == [
        VerificationStatus.APPROVED,
        VerificationStatus.REJECTED,
        VerificationStatus.NEEDS_REVIEW,
    ]


@pytest.mark.asyncio
async def test_verify_many_isolates_failures() -> None:
    """One lookup blowing up does not change its siblings' results."""

    async def lookup(mc_number: str) -> RegistryLookup:
        if mc_number == "boom":
            raise RuntimeError("unexpected payload")
        return ACTIVE

    registry = AsyncMock()
    registry.lookup.side_effect = lookup

    items = await _engine(registry).verify_many(
        [
            _offer(load_id="ok-1"),
            _offer(load_id="bad", broker_mc="boom"),
            _offer(load_id="ok-2"),
        ]
    )

    statuses = {item.load_id: item.result.verification_status for item in items}
    assert statuses == {
        "ok-1": VerificationStatus.APPROVED,
        "bad": VerificationStatus.NEEDS_REVIEW,
        "ok-2": VerificationStatus.APPROVED,
    }


@pytest.mark.asyncio
async def test_verify_many_empty() -> None:
    assert await _engine(_registry()).verify_many([]) == []
