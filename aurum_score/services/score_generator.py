"""
Deterministic score generation.

A score is a pure function of ``(user_id, image_payload)``:

1. The pair is hashed with SHA-256 into a hex seed.
2. Each component (symmetry, vibe, mystique) is drawn from a wide
   pre-weight range using a 31-multiplier string hash of ``seed + tag``,
   then scaled by its weight so the three fit a 0-100 budget.
3. The total is clamped to 55-95, jittered by -2..+2 (drawn from the sum
   itself) and clamped again.

The string hash follows the classic ``hash * 31 + code unit`` recurrence
with signed 32-bit wraparound over UTF-16 code units, so digests match
other runtimes that implement the same recurrence.
"""

import asyncio
import hashlib
import logging
import math
import time

from aurum_score.models.internal_models import (
    MYSTIQUE_RANGE,
    SYMMETRY_RANGE,
    TOTAL_SCORE_RANGE,
    VIBE_RANGE,
    ScoreComponents,
    ScoreResult,
)
from aurum_score.utils.time_utils import to_iso, utc_now

logger = logging.getLogger(__name__)

# (tag, pre-weight range, weight)
COMPONENT_SPECS = (
    ("symmetry", (60, 95), 0.35),
    ("vibe", (55, 90), 0.40),
    ("mystique", (50, 85), 0.25),
)
ADJUSTMENT_RANGE = (-2, 2)
DELAY_RANGE_MS = (2000, 4000)

_HASH_MODULUS = 1_000_000


class InvalidScoreError(Exception):
    """Raised when a generated score violates its range invariants."""
    pass


def derive_seed(user_id: str, image_payload: str) -> str:
    """SHA-256 hex digest of ``"{user_id}:{image_payload}"``."""
    combined = f"{user_id}:{image_payload}"
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()


def string_hash(value: str) -> int:
    """Signed 32-bit ``hash * 31 + code unit`` over the UTF-16 encoding of ``value``."""
    data = value.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        code_unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + code_unit) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def deterministic_random(seed: str, minimum: int, maximum: int) -> int:
    """Map ``seed`` to an integer in the inclusive range ``[minimum, maximum]``."""
    normalized = (abs(string_hash(seed)) % _HASH_MODULUS) / _HASH_MODULUS
    return math.floor(normalized * (maximum - minimum + 1)) + minimum


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties towards positive infinity."""
    floor = math.floor(value)
    return floor + 1 if value - floor >= 0.5 else floor


def clamp(value: int, bounds=TOTAL_SCORE_RANGE) -> int:
    low, high = bounds
    return max(low, min(high, value))


def components_from_seed(seed: str) -> ScoreComponents:
    values = {}
    for tag, (low, high), weight in COMPONENT_SPECS:
        base = deterministic_random(seed + tag, low, high)
        values[tag] = round_half_up(base * weight)
    return ScoreComponents(**values)


def compose_total(components: ScoreComponents) -> int:
    total = components.total
    clamped = clamp(total)
    adjustment = deterministic_random(str(total), *ADJUSTMENT_RANGE)
    return clamp(clamped + adjustment)


def simulated_delay_ms(user_id: str, image_payload: str) -> int:
    return deterministic_random(user_id + image_payload + "delay", *DELAY_RANGE_MS)


def generate_score_instant(user_id: str, image_payload: str) -> ScoreResult:
    """Generate a score without any simulated processing delay."""
    start = time.perf_counter()

    seed = derive_seed(user_id, image_payload)
    components = components_from_seed(seed)
    total_score = compose_total(components)

    processing_time_ms = int((time.perf_counter() - start) * 1000)
    return ScoreResult(
        total_score=total_score,
        components=components,
        processing_time_ms=processing_time_ms,
        timestamp=to_iso(utc_now())
    )


async def generate_score(user_id: str, image_payload: str, simulate_delay: bool = False) -> ScoreResult:
    """
    Generate a score for a submission.

    Args:
        user_id: Submitting user
        image_payload: Stable per-attempt payload (never decoded)
        simulate_delay: Sleep for a deterministic 2-4 seconds before scoring,
            so clients see model-like latency

    Returns:
        ScoreResult whose processing time includes the simulated delay
    """
    start = time.perf_counter()

    if simulate_delay:
        delay_ms = simulated_delay_ms(user_id, image_payload)
        logger.debug(f"Simulating {delay_ms}ms processing delay for user {user_id}")
        await asyncio.sleep(delay_ms / 1000)

    result = generate_score_instant(user_id, image_payload)
    elapsed_ms = int((time.perf_counter() - start) * 1000)

    return ScoreResult(
        total_score=result.total_score,
        components=result.components,
        processing_time_ms=elapsed_ms,
        timestamp=result.timestamp
    )


def validate_score(result: ScoreResult) -> bool:
    """Check every range invariant of a generated score."""
    checks = (
        (result.total_score, TOTAL_SCORE_RANGE),
        (result.components.symmetry, SYMMETRY_RANGE),
        (result.components.vibe, VIBE_RANGE),
        (result.components.mystique, MYSTIQUE_RANGE),
    )
    return (
        all(low <= value <= high for value, (low, high) in checks)
        and result.processing_time_ms >= 0
        and bool(result.timestamp)
    )
