"""The individual verification checks.

Each check is a plain function from its input and the configuration to a
CheckOutcome. None of them know about each other; ordering and
short-circuiting are the engine's job.

- check_credit_score: broker credit score against the min/max band
- check_registry:     folds an FMCSA lookup into a CheckOutcome
- check_freshness:    minutes since the load was posted
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

from load_verifier.config import VerificationConfig
from load_verifier.fmcsa_client import RegistryLookup
from load_verifier.models import CheckOutcome, Disposition


def check_credit_score(score: int, config: VerificationConfig) -> CheckOutcome:
    """Check a broker's credit score.

    Scores below the minimum are rejected. Scores above the maximum are
    implausibly close to the ceiling and are treated as a sign of a
    fabricated or manipulated value, so they go to review.

    Args:
        score: Credit score, already range-checked by the caller.
        config: Supplies credit_score_min and credit_score_max.

    Returns:
        REJECT, WARN or PASS outcome with the score as evidence.
    """
    evidence = {
        "score": score,
        "min": config.credit_score_min,
        "max": config.credit_score_max,
    }

    if score < config.credit_score_min:
        return CheckOutcome(
            disposition=Disposition.REJECT,
            status="FAILED",
            reason=(
                f"Credit score {score} below minimum threshold "
                f"({config.credit_score_min})"
            ),
            evidence=evidence,
        )

    if score > config.credit_score_max:
        return CheckOutcome(
            disposition=Disposition.WARN,
            status="SUSPICIOUS",
            reason=(
                f"Credit score {score} suspiciously high (above "
                f"{config.credit_score_max}) - may indicate a fabricated "
                "or manipulated score"
            ),
            evidence=evidence,
        )

    return CheckOutcome(disposition=Disposition.PASS, status="PASSED", evidence=evidence)


def check_registry(lookup: RegistryLookup) -> CheckOutcome:
    """Convert an FMCSA lookup into a CheckOutcome.

    The lookup already carries its disposition; this only attaches the
    carrier details as evidence.
    """
    evidence: dict[str, object] = {}
    if lookup.carrier is not None:
        evidence["carrier"] = lookup.carrier.model_dump()
    return CheckOutcome(
        disposition=lookup.disposition,
        status=lookup.status.value,
        reason=lookup.reason,
        evidence=evidence,
    )


def check_freshness(
    posted_at: datetime,
    now: datetime,
    config: VerificationConfig,
) -> CheckOutcome:
    """Check how long ago a load was posted.

    Old postings are likely already taken. A posting time in the future
    (clock skew) yields a negative age, which simply passes.

    Args:
        posted_at: When the load was posted. Naive values are read as UTC.
        now: The current time (timezone-aware).
        config: Supplies the warning and rejection thresholds in minutes.

    Returns:
        REJECT, WARN or PASS outcome. The age in minutes is always
        included as evidence.
    """
    if posted_at.tzinfo is None:
        posted_at = posted_at.replace(tzinfo=timezone.utc)

    age_minutes = math.floor((now - posted_at).total_seconds() / 60)
    evidence = {"age_minutes": age_minutes}

    if age_minutes > config.freshness_reject_minutes:
        return CheckOutcome(
            disposition=Disposition.REJECT,
            status="STALE",
            reason=(
                f"Load posted {age_minutes} minutes ago - too old, likely "
                f"unavailable (>{config.freshness_reject_minutes}min threshold)"
            ),
            evidence=evidence,
        )

    if age_minutes > config.freshness_warn_minutes:
        return CheckOutcome(
            disposition=Disposition.WARN,
            status="AGING",
            reason=f"Load posted {age_minutes} minutes ago - may be stale",
            evidence=evidence,
        )

    return CheckOutcome(disposition=Disposition.PASS, status="FRESH", evidence=evidence)
