"""HTTP client for the FMCSA carrier registry.

This module provides the FMCSAClient class, which resolves a broker's MC
number to an authorization status. The registry is the only network
dependency of the verification engine, so the client is built to fail
soft:

1. No API key configured → the lookup is skipped with a warning
2. Exactly one GET request per lookup, bounded by a fixed timeout
3. Timeouts and upstream errors become warnings, never rejections
4. Only an explicit "not found / not authorized / out of service" answer
   from the registry rejects a load

Registry response shape:
    GET {base}/{mc_number}?webKey=<key> returns JSON like

        {"content": {"carrier": {"legalName": "ACME LOGISTICS LLC",
                                 "allowedToOperate": "Y",
                                 "outOfServiceDate": null,
                                 "carrierOperation": "Interstate"}}}

    Anything without a carrier object at content.carrier is treated as
    "carrier not found".

Usage:
    client = FMCSAClient(api_key="...")
    lookup = await client.lookup("123456")
    await client.close()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from load_verifier.config import (
    FMCSA_API_BASE,
    FMCSA_API_KEY,
    FMCSA_TIMEOUT_MS,
    VerificationConfig,
)
from load_verifier.models import CarrierRecord, Disposition

logger = logging.getLogger(__name__)

# The allowedToOperate code the registry uses for an authorized carrier.
ALLOWED_TO_OPERATE = "Y"


class RegistryStatus(str, Enum):
    SKIPPED = "SKIPPED"
    ACTIVE = "ACTIVE"
    NOT_FOUND = "NOT_FOUND"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"
    TIMEOUT = "TIMEOUT"
    ERROR = "ERROR"


@dataclass(frozen=True)
class RegistryLookup:
    """Normalized outcome of one registry lookup.

    Attributes:
        status: What the registry said (or why it could not say anything).
        disposition: How the engine should treat this outcome.
        reason: Human-readable explanation for WARN and REJECT outcomes.
        carrier: The parsed carrier, when the registry returned one.
    """

    status: RegistryStatus
    disposition: Disposition
    reason: str | None = None
    carrier: CarrierRecord | None = None


class FMCSATimeoutError(Exception):
    """Raised when the registry does not answer within the timeout."""


class FMCSAAPIError(Exception):
    """Raised when a registry request fails or returns an error response."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


class FMCSAClient:
    """Async client for the FMCSA carrier registry.

    The client keeps no state between lookups apart from its connection
    pool, so a single instance can be shared by concurrent verifications.

    Attributes:
        api_base: Carrier endpoint base URL (the MC number is appended).
        api_key: The FMCSA webKey. Empty disables the lookup.
        timeout_ms: Overall deadline for one lookup (body included), in ms.
    """

    def __init__(
        self,
        api_base: str = FMCSA_API_BASE,
        api_key: str = FMCSA_API_KEY,
        timeout_ms: int = FMCSA_TIMEOUT_MS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.timeout_ms = timeout_ms

        # httpx limits each phase (connect, each read, ...) separately; the
        # overall deadline is applied around the whole request in
        # _fetch_carrier.
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_ms / 1000),
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: VerificationConfig) -> FMCSAClient:
        return cls(
            api_base=config.fmcsa_api_base,
            api_key=config.fmcsa_api_key,
            timeout_ms=config.fmcsa_timeout_ms,
        )

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    # --- Public API ---

    async def lookup(self, mc_number: str) -> RegistryLookup:
        """Look up a carrier by MC number.

        Never raises for network or upstream failures; those are folded
        into TIMEOUT / ERROR outcomes with a WARN disposition.

        Args:
            mc_number: The broker's MC number.

        Returns:
            The normalized lookup outcome.
        """
        if not self.api_key:
            logger.warning("FMCSA_API_KEY not configured - skipping FMCSA check")
            return RegistryLookup(
                status=RegistryStatus.SKIPPED,
                disposition=Disposition.WARN,
                reason="FMCSA validation unavailable (API key not configured)",
            )

        try:
            data = await self._fetch_carrier(mc_number)
        except FMCSATimeoutError as exc:
            logger.error("FMCSA lookup for MC %s timed out: %s", mc_number, exc)
            return RegistryLookup(
                status=RegistryStatus.TIMEOUT,
                disposition=Disposition.WARN,
                reason="FMCSA API timeout - broker verification incomplete",
            )
        except FMCSAAPIError as exc:
            if exc.status_code == 404:
                return _not_found(mc_number)
            logger.error("FMCSA lookup for MC %s failed: %s", mc_number, exc)
            return RegistryLookup(
                status=RegistryStatus.ERROR,
                disposition=Disposition.WARN,
                reason="FMCSA API error - broker verification incomplete",
            )

        return self._evaluate(mc_number, data)

    # --- Internals ---

    async def _fetch_carrier(self, mc_number: str) -> Any:
        """Send the single GET request for a carrier.

        Returns:
            The decoded JSON body, or None when the body is empty or not JSON.

        Raises:
            FMCSATimeoutError: If the whole request, body included, takes
                longer than timeout_ms.
            FMCSAAPIError: If the request fails or returns a non-2xx status.
        """
        url = f"{self.api_base}/{mc_number}"
        try:
            response = await asyncio.wait_for(
                self._http.get(
                    url,
                    params={"webKey": self.api_key},
                    headers={"Accept": "application/json"},
                ),
                timeout=self.timeout_ms / 1000,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise FMCSATimeoutError(
                f"Request to {url} exceeded {self.timeout_ms}ms"
            ) from exc
        except httpx.HTTPError as exc:
            raise FMCSAAPIError(
                status_code=0,
                detail=f"Request to {url} failed: {exc}",
            ) from exc

        # Redirects are followed; anything left that is not 2xx (e.g. a 3xx
        # without a Location header) is an upstream error, not "not found".
        if not response.is_success:
            raise FMCSAAPIError(
                status_code=response.status_code,
                detail=response.text,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("FMCSA returned a non-JSON body for MC %s", mc_number)
            return None

    def _evaluate(self, mc_number: str, data: Any) -> RegistryLookup:
        """Turn a registry response body into a lookup outcome."""
        content = data.get("content") if isinstance(data, dict) else None
        carrier = content.get("carrier") if isinstance(content, dict) else None
        if not isinstance(carrier, dict) or not carrier:
            return _not_found(mc_number)

        record = parse_carrier(mc_number, carrier)

        if not record.allowed_to_operate:
            return RegistryLookup(
                status=RegistryStatus.NOT_AUTHORIZED,
                disposition=Disposition.REJECT,
                reason=(
                    f"Carrier {mc_number} ({record.legal_name}) "
                    "not authorized to operate"
                ),
                carrier=record,
            )

        if record.out_of_service:
            return RegistryLookup(
                status=RegistryStatus.OUT_OF_SERVICE,
                disposition=Disposition.REJECT,
                reason=f"Carrier {mc_number} ({record.legal_name}) is out of service",
                carrier=record,
            )

        return RegistryLookup(
            status=RegistryStatus.ACTIVE,
            disposition=Disposition.PASS,
            carrier=record,
        )


def parse_carrier(mc_number: str, carrier: dict[str, Any]) -> CarrierRecord:
    """Build a CarrierRecord from the registry's carrier object.

    A missing or null outOfServiceDate means the carrier is in service.
    """
    status = carrier.get("allowedToOperate") or "UNKNOWN"
    return CarrierRecord(
        mc_number=mc_number,
        legal_name=carrier.get("legalName") or "Unknown",
        status=str(status),
        allowed_to_operate=status == ALLOWED_TO_OPERATE,
        out_of_service=carrier.get("outOfServiceDate") is not None,
        carrier_operation=_operation_label(carrier.get("carrierOperation")),
    )


def _operation_label(value: Any) -> str:
    # The registry sometimes nests the label as {"carrierOperationDesc": ...}
    if isinstance(value, dict):
        value = value.get("carrierOperationDesc")
    return str(value) if value else "Unknown"


def _not_found(mc_number: str) -> RegistryLookup:
    return RegistryLookup(
        status=RegistryStatus.NOT_FOUND,
        disposition=Disposition.REJECT,
        reason=f"MC number {mc_number} not found in FMCSA database",
    )


# --- Module-level singleton ---
# One shared client (and connection pool) for the whole application.
# It only holds read-only configuration, so concurrent lookups are safe.

_client: FMCSAClient | None = None


def get_client() -> FMCSAClient:
    """Get or create the shared FMCSAClient singleton."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = FMCSAClient.from_config(VerificationConfig.from_env())
    return _client


async def close_client() -> None:
    """Close and forget the shared client (called on application shutdown)."""
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.close()
        _client = None
