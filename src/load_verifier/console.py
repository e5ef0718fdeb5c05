"""Helpers for the Streamlit operator console.

Kept separate from streamlit_app.py (which runs top to bottom on every
rerun) so they can be imported and unit tested without Streamlit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import requests

from load_verifier.config import AGENT_BACKEND_URL, API_KEY

# Streamlit badge colour per verification status
STATUS_BADGES = {
    "APPROVED": ("green", "Approved"),
    "REJECTED": ("red", "Rejected"),
    "NEEDS_REVIEW": ("orange", "Needs review"),
}


class ConsoleError(Exception):
    """Raised when the backend cannot be reached or returns an error."""


def build_payload(
    load_id: str,
    broker_name: str,
    broker_mc: str,
    credit_score: int,
    posted_at: datetime,
    pickup_city: str = "",
    delivery_city: str = "",
    rate: float | None = None,
    equipment: str = "",
) -> dict[str, Any]:
    """Build the JSON body for POST /api/verify from form values.

    Naive timestamps are treated as UTC. Blank optional fields are left out.
    """
    if posted_at.tzinfo is None:
        posted_at = posted_at.replace(tzinfo=timezone.utc)

    payload: dict[str, Any] = {
        "load_id": load_id.strip(),
        "broker_name": broker_name.strip(),
        "broker_mc": broker_mc.strip(),
        "credit_score": int(credit_score),
        "posted_at": posted_at.isoformat(),
    }
    optional: dict[str, Any] = {
        "pickup_city": pickup_city.strip(),
        "delivery_city": delivery_city.strip(),
        "rate": rate,
        "equipment": equipment.strip(),
    }
    payload.update({k: v for k, v in optional.items() if v not in ("", None)})
    return payload


def submit_load(
    payload: dict[str, Any],
    backend_url: str = AGENT_BACKEND_URL,
    api_key: str = API_KEY,
    timeout: float = 30,
) -> dict[str, Any]:
    """Send one load to the backend and return the verification result.

    Raises:
        ConsoleError: With a message suitable for showing to the operator.
    """
    headers = {"X-API-Key": api_key} if api_key else {}
    try:
        resp = requests.post(
            f"{backend_url.rstrip('/')}/api/verify",
            json=payload,
            headers=headers,
            timeout=timeout,
        )
    except requests.exceptions.ConnectionError as exc:
        raise ConsoleError(
            f"Could not connect to the backend. Is the API server running at {backend_url}?"
        ) from exc
    except requests.exceptions.Timeout as exc:
        raise ConsoleError("The request timed out. Try again in a moment.") from exc

    if resp.status_code >= 400:
        try:
            body = resp.json()
            message = body.get("message") or body.get("error") or resp.text
        except ValueError:
            message = resp.text
        raise ConsoleError(f"Backend returned HTTP {resp.status_code}: {message}")

    return resp.json()


def status_badge(status: str) -> tuple[str, str]:
    """Return (colour, label) for a verification status."""
    return STATUS_BADGES.get(status, ("gray", status))
