"""Configuration for the load verification agent.

Loads settings from environment variables (via a .env file or the system
environment). Every value has a default so the package can be imported
and tested without any environment set up.

The decision thresholds and registry settings are bundled into a
VerificationConfig, which is handed to the engine and the FMCSA client
when they are constructed. Nothing reads these constants mid-request.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists (it won't exist in CI or Docker, which is fine)
_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path)

# --- Defaults (used when the environment does not override them) ---
DEFAULT_CREDIT_SCORE_MIN = 82
DEFAULT_CREDIT_SCORE_MAX = 97
DEFAULT_FRESHNESS_WARNING_MINUTES = 30
DEFAULT_FRESHNESS_REJECT_MINUTES = 60
DEFAULT_FMCSA_API_BASE = "https://mobile.fmcsa.dot.gov/qc/services/carriers"
DEFAULT_FMCSA_TIMEOUT_MS = 5000


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


# --- Credit score check ---
# Scores below the minimum are rejected. Scores above the maximum are
# implausibly close to the ceiling and get flagged for review.
CREDIT_SCORE_MIN: int = _env_int("CREDIT_SCORE_MIN", DEFAULT_CREDIT_SCORE_MIN)
CREDIT_SCORE_MAX: int = _env_int("CREDIT_SCORE_MAX", DEFAULT_CREDIT_SCORE_MAX)

# --- Load freshness check (minutes since the load was posted) ---
LOAD_FRESHNESS_WARNING_MINUTES: int = _env_int(
    "LOAD_FRESHNESS_WARNING_MINUTES", DEFAULT_FRESHNESS_WARNING_MINUTES
)
LOAD_FRESHNESS_REJECT_MINUTES: int = _env_int(
    "LOAD_FRESHNESS_REJECT_MINUTES", DEFAULT_FRESHNESS_REJECT_MINUTES
)

# --- FMCSA carrier registry ---
FMCSA_API_BASE: str = os.getenv("FMCSA_API_BASE", DEFAULT_FMCSA_API_BASE)
# Overall deadline for one registry lookup, including reading the body.
FMCSA_TIMEOUT_MS: int = _env_int("FMCSA_TIMEOUT_MS", DEFAULT_FMCSA_TIMEOUT_MS)

# The FMCSA "webKey". When empty, the registry check is skipped and every
# load that would otherwise be approved goes to review instead.
FMCSA_API_KEY: str = os.getenv("FMCSA_API_KEY", "")

# --- HTTP API ---
# Shared secret expected in the X-API-Key header. Only optional when
# APP_ENV is "development".
API_KEY: str = os.getenv("API_KEY", "")
APP_ENV: str = os.getenv("APP_ENV", "development")
ALLOWED_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]
MAX_BATCH_SIZE: int = int(os.getenv("MAX_BATCH_SIZE", "50"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Operator console ---
AGENT_BACKEND_URL: str = os.getenv("AGENT_BACKEND_URL", "http://localhost:8000")


@dataclass(frozen=True)
class VerificationConfig:
    """Thresholds and registry settings used by a single engine instance.

    Attributes:
        credit_score_min: Scores strictly below this are rejected.
        credit_score_max: Scores strictly above this are flagged as suspicious.
        freshness_warn_minutes: Loads older than this are flagged as stale.
        freshness_reject_minutes: Loads older than this are rejected.
        fmcsa_api_base: Base URL of the carrier lookup endpoint.
        fmcsa_api_key: Registry credential; empty means "skip the lookup".
        fmcsa_timeout_ms: Deadline for the single registry request.
    """

    credit_score_min: int = DEFAULT_CREDIT_SCORE_MIN
    credit_score_max: int = DEFAULT_CREDIT_SCORE_MAX
    freshness_warn_minutes: int = DEFAULT_FRESHNESS_WARNING_MINUTES
    freshness_reject_minutes: int = DEFAULT_FRESHNESS_REJECT_MINUTES
    fmcsa_api_base: str = DEFAULT_FMCSA_API_BASE
    fmcsa_api_key: str = ""
    fmcsa_timeout_ms: int = DEFAULT_FMCSA_TIMEOUT_MS

    @classmethod
    def from_env(cls) -> VerificationConfig:
        """Build a config from the module-level environment settings."""
        return cls(
            credit_score_min=CREDIT_SCORE_MIN,
            credit_score_max=CREDIT_SCORE_MAX,
            freshness_warn_minutes=LOAD_FRESHNESS_WARNING_MINUTES,
            freshness_reject_minutes=LOAD_FRESHNESS_REJECT_MINUTES,
            fmcsa_api_base=FMCSA_API_BASE,
            fmcsa_api_key=FMCSA_API_KEY,
            fmcsa_timeout_ms=FMCSA_TIMEOUT_MS,
        )
