"""
Tests for final score calculation.
"""

import pytest
from dataclasses import asdict
from datetime import timedelta

from aurum_score.models.internal_models import UserProfile
from aurum_score.services.entitlement import (
    InvalidFacialScoreError,
    InvalidGenderError,
    InvalidNftTierError,
    MissingFacialScoreError,
    MissingUniversityError,
    MissingUserIdError,
    ProfileValidationError,
    calculate_final_score,
    nft_score,
    score_breakdown,
    university_score,
)
from aurum_score.utils.time_utils import parse_iso, utc_now


def make_profile(**overrides) -> UserProfile:
    fields = {
        "user_id": "u1",
        "gender": "male",
        "facial_score": 70,
        "university": "Chulalongkorn University",
        "nft_tier": "elite",
    }
    fields.update(overrides)
    return UserProfile(**fields)


class TestLookupTables:
    """Test cases for university and NFT lookups."""

    @pytest.mark.parametrize("university,expected", [
        ("Chulalongkorn University", 20),
        ("Siriraj Hospital (Mahidol)", 20),
        ("KMUTT", 10),
        ("TU Tha Prachan", 10),
        ("Assumption University (ABAC)", 5),
        ("Harvard University", 0),
        ("chulalongkorn university", 0),
    ])
    def test_university_score(self, university, expected):
        assert university_score(university) == expected

    @pytest.mark.parametrize("tier,expected", [
        (None, 0),
        ("none", 0),
        ("basic", 3),
        ("rare", 5),
        ("elite", 10),
        ("legendary", 15),
    ])
    def test_male_nft_score(self, tier, expected):
        assert nft_score("male", tier) == expected

    def test_female_nft_score_is_zero(self):
        assert nft_score("female", "legendary") == 0

    def test_female_unknown_tier_is_ignored(self):
        assert nft_score("female", "mythic") == 0

    def test_male_unknown_tier_rejected(self):
        with pytest.raises(InvalidNftTierError):
            nft_score("male", "mythic")


class TestCalculateFinalScore:
    """Test cases for calculate_final_score."""

    def test_male_elite_chulalongkorn(self):
        """Test 70 facial + 20 university + 10 NFT."""
        result = calculate_final_score(make_profile())

        assert result.final_score == 100

    def test_female_ignores_nft(self):
        result = calculate_final_score(make_profile(gender="female"))

        assert result.final_score == 90

    def test_unknown_university_scores_zero(self):
        result = calculate_final_score(make_profile(university="Oxford", nft_tier=None))

        assert result.final_score == 70

    def test_result_not_clamped(self):
        result = calculate_final_score(make_profile(facial_score=95, nft_tier="legendary"))

        assert result.final_score == 130

    def test_fractional_facial_score_rounds(self):
        assert calculate_final_score(make_profile(facial_score=84.3)).final_score == 114
        assert calculate_final_score(
            make_profile(facial_score=65.5, university="Oxford", nft_tier="none")
        ).final_score == 66

    def test_score_expiry_is_thirty_days_out(self):
        before = utc_now()
        result = calculate_final_score(make_profile())
        after = utc_now()

        expiry = parse_iso(result.score_expiry)
        assert before + timedelta(days=30) - timedelta(milliseconds=1) <= expiry <= after + timedelta(days=30)
        assert result.score_expiry.endswith("Z")

    def test_custom_ttl(self):
        result = calculate_final_score(make_profile(), ttl_days=7)

        remaining = parse_iso(result.score_expiry) - utc_now()
        assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)

    def test_input_profile_not_mutated(self):
        profile = make_profile()
        snapshot = asdict(profile)

        result = calculate_final_score(profile)

        assert asdict(profile) == snapshot
        assert profile.final_score is None
        assert result is not profile
        assert result.user_id == profile.user_id
        assert result.nft_tier == profile.nft_tier

    def test_breakdown(self):
        breakdown = score_breakdown(make_profile(facial_score=66.5))

        assert breakdown.facial == 66.5
        assert breakdown.university == 20
        assert breakdown.nft == 10


class TestProfileValidation:
    """Test cases for entitlement input validation."""

    @pytest.mark.parametrize("overrides,error", [
        ({"user_id": None}, MissingUserIdError),
        ({"user_id": ""}, MissingUserIdError),
        ({"facial_score": None}, MissingFacialScoreError),
        ({"facial_score": "70"}, InvalidFacialScoreError),
        ({"facial_score": True}, InvalidFacialScoreError),
        ({"facial_score": float("nan")}, InvalidFacialScoreError),
        ({"facial_score": float("inf")}, InvalidFacialScoreError),
        ({"facial_score": float("-inf")}, InvalidFacialScoreError),
        ({"university": None}, MissingUniversityError),
        ({"university": ""}, MissingUniversityError),
        ({"gender": None}, InvalidGenderError),
        ({"gender": "other"}, InvalidGenderError),
        ({"nft_tier": "mythic"}, InvalidNftTierError),
    ])
    def test_invalid_profiles(self, overrides, error):
        with pytest.raises(error):
            calculate_final_score(make_profile(**overrides))

    def test_errors_share_a_base_class(self):
        with pytest.raises(ProfileValidationError):
            calculate_final_score(make_profile(university=None))
        with pytest.raises(ValueError):
            calculate_final_score(make_profile(facial_score=None))

    def test_zero_facial_score_is_valid(self):
        result = calculate_final_score(make_profile(facial_score=0))

        assert result.final_score == 30

    def test_missing_fields_are_reported_distinctly(self):
        """Test a missing university and a missing facial score raise different errors."""
        with pytest.raises(MissingUniversityError) as university_error:
            calculate_final_score(make_profile(university=None))
        with pytest.raises(MissingFacialScoreError) as facial_error:
            calculate_final_score(make_profile(facial_score=None))

        assert str(university_error.value) != str(facial_error.value)
