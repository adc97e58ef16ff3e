"""
Final (entitlement) score calculation.

Combines a caller-supplied facial score with two curated lookup tables:
university tier (Bangkok institutions only) and NFT tier (male profiles
only). The result lives in its own namespace: it is not clamped to the
facial score band and carries its own 30-day expiry.
"""

import logging
import math
import numbers
from dataclasses import dataclass, replace
from datetime import timedelta

from aurum_score.models.internal_models import Gender, NftTier, UserProfile
from aurum_score.services.score_generator import round_half_up
from aurum_score.utils.time_utils import to_iso, utc_now

logger = logging.getLogger(__name__)

FINAL_SCORE_TTL_DAYS = 30

# Closed allowlist; every other university scores 0
UNIVERSITY_SCORES = {
    "Chulalongkorn University": 20,
    "Mahidol International College": 20,
    "Thammasat Rangsit": 20,
    "Siriraj Hospital (Mahidol)": 20,
    "Kasetsart University": 10,
    "KMUTT": 10,
    "Srinakharinwirot University": 10,
    "Silpakorn University": 10,
    "TU Tha Prachan": 10,
    "Bangkok University": 5,
    "Rangsit University": 5,
    "Sripatum University": 5,
    "Assumption University (ABAC)": 5,
}

NFT_TIER_SCORES = {
    NftTier.NONE.value: 0,
    NftTier.BASIC.value: 3,
    NftTier.RARE.value: 5,
    NftTier.ELITE.value: 10,
    NftTier.LEGENDARY.value: 15,
}


class ProfileValidationError(ValueError):
    """Base exception for invalid entitlement input."""
    pass


class MissingUserIdError(ProfileValidationError):
    pass


class MissingFacialScoreError(ProfileValidationError):
    pass


class InvalidFacialScoreError(ProfileValidationError):
    pass


class MissingUniversityError(ProfileValidationError):
    pass


class InvalidGenderError(ProfileValidationError):
    pass


class InvalidNftTierError(ProfileValidationError):
    pass


@dataclass(frozen=True)
class FinalScoreBreakdown:
    facial: float
    university: int
    nft: int


def university_score(university: str) -> int:
    return UNIVERSITY_SCORES.get(university, 0)


def nft_score(gender: str, nft_tier: str = None) -> int:
    """NFT bonus for a profile; female profiles never receive one."""
    if gender != Gender.MALE.value:
        return 0

    tier = nft_tier or NftTier.NONE.value
    if tier not in NFT_TIER_SCORES:
        raise InvalidNftTierError(f"Invalid NFT tier: {tier}")
    return NFT_TIER_SCORES[tier]


def validate_profile(profile: UserProfile) -> None:
    """
    Validate entitlement input without modifying it.

    Raises:
        ProfileValidationError: The specific subclass for the first failing field
    """
    if not profile.user_id:
        raise MissingUserIdError("User ID is required")

    if profile.facial_score is None:
        raise MissingFacialScoreError("Facial score is required")

    if (
        isinstance(profile.facial_score, bool)
        or not isinstance(profile.facial_score, numbers.Real)
        or not math.isfinite(profile.facial_score)
    ):
        raise InvalidFacialScoreError(f"Facial score must be a number, got {profile.facial_score!r}")

    if not profile.university:
        raise MissingUniversityError("University is required")

    if profile.gender not in (Gender.MALE.value, Gender.FEMALE.value):
        raise InvalidGenderError("Gender must be 'male' or 'female'")


def score_breakdown(profile: UserProfile) -> FinalScoreBreakdown:
    validate_profile(profile)
    return FinalScoreBreakdown(
        facial=profile.facial_score,
        university=university_score(profile.university),
        nft=nft_score(profile.gender, profile.nft_tier)
    )


def calculate_final_score(profile: UserProfile, ttl_days: int = FINAL_SCORE_TTL_DAYS) -> UserProfile:
    """
    Calculate a profile's final score.

    Args:
        profile: Entitlement input; left unmodified
        ttl_days: Lifetime of the final score

    Returns:
        A copy of the profile with ``final_score`` and ``score_expiry`` set

    Raises:
        ProfileValidationError: If the profile is incomplete or has an unknown NFT tier
    """
    breakdown = score_breakdown(profile)
    final_score = round_half_up(breakdown.facial + breakdown.university + breakdown.nft)
    expiry = utc_now() + timedelta(days=ttl_days)

    logger.debug(
        f"Final score for user {profile.user_id}: {final_score} "
        f"(facial={breakdown.facial}, university={breakdown.university}, nft={breakdown.nft})"
    )

    return replace(
        profile,
        gender=Gender(profile.gender).value,
        final_score=final_score,
        score_expiry=to_iso(expiry)
    )
