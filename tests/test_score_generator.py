"""
Tests for deterministic score generation.
"""

import hashlib
import itertools
import pytest
from unittest.mock import AsyncMock, patch

from aurum_score.models.internal_models import ScoreComponents, ScoreResult
from aurum_score.services.score_generator import (
    compose_total,
    components_from_seed,
    derive_seed,
    deterministic_random,
    generate_score,
    generate_score_instant,
    round_half_up,
    simulated_delay_ms,
    string_hash,
    validate_score,
)


class TestSeedDerivation:
    """Test cases for seed derivation."""

    def test_seed_is_sha256_hex(self):
        """Test that the seed is a 64 character hex digest."""
        seed = derive_seed("u1", "image-bytes")

        assert len(seed) == 64
        assert all(c in "0123456789abcdef" for c in seed)

    def test_seed_joins_inputs_with_colon(self):
        """Test the seed is the SHA-256 of "userId:payload"."""
        expected = hashlib.sha256("user-1:payload".encode("utf-8")).hexdigest()

        assert derive_seed("user-1", "payload") == expected

    def test_seed_is_deterministic(self):
        """Test identical inputs always give the identical seed."""
        assert derive_seed("user-1", "payload") == derive_seed("user-1", "payload")

    def test_seed_depends_on_both_inputs(self):
        """Test that changing either input changes the seed."""
        base = derive_seed("user-1", "payload")

        assert derive_seed("user-2", "payload") != base
        assert derive_seed("user-1", "payload2") != base


class TestStringHash:
    """Test cases for the 31-multiplier string hash."""

    def test_empty_string(self):
        assert string_hash("") == 0

    def test_short_strings(self):
        """Test the recurrence on strings too short to overflow."""
        assert string_hash("a") == 97
        assert string_hash("ab") == 97 * 31 + 98

    def test_matches_32bit_wraparound(self):
        """Test well-known 32-bit string hash values."""
        assert string_hash("hello") == 99162322
        assert string_hash("polygenelubricants") == -2147483648

    def test_result_is_signed_32bit(self):
        """Test that long strings stay within the signed 32-bit range."""
        value = string_hash("x" * 1000 + derive_seed("u", "p"))

        assert -2**31 <= value < 2**31

    def test_non_bmp_characters_use_utf16_code_units(self):
        """Test that astral characters hash as surrogate pairs."""
        high, low = 0xD83D, 0xDE00  # U+1F600
        expected = (high * 31 + low) & 0xFFFFFFFF
        expected = expected - 2**32 if expected >= 2**31 else expected

        assert string_hash("\U0001F600") == expected


class TestDeterministicRandom:
    """Test cases for range mapping."""

    def test_values_within_inclusive_range(self):
        """Test every draw falls within the inclusive bounds."""
        for i in range(500):
            value = deterministic_random(f"seed-{i}", 60, 95)
            assert 60 <= value <= 95

    def test_negative_ranges(self):
        """Test draws for the jitter range."""
        values = {deterministic_random(str(total), -2, 2) for total in range(40, 120)}

        assert values <= {-2, -1, 0, 1, 2}
        assert len(values) > 1

    def test_minimum_int32_hash(self):
        """Test that the most negative hash still maps into range."""
        value = deterministic_random("polygenelubricants", 1, 5)

        assert 1 <= value <= 5


class TestRoundHalfUp:
    """Test cases for rounding."""

    @pytest.mark.parametrize("value,expected", [
        (12.5, 13),
        (12.49, 12),
        (65.5, 66),
        (114.3, 114),
        (95.8, 96),
        (-2.5, -2),
        (33.25, 33),
    ])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestComponents:
    """Test cases for component generation."""

    def test_components_within_ranges(self):
        """Test component invariants across many seeds."""
        for user, payload in itertools.product(range(40), range(15)):
            components = components_from_seed(derive_seed(f"user-{user}", f"image-{payload}"))

            assert 0 <= components.symmetry <= 35
            assert 0 <= components.vibe <= 40
            assert 0 <= components.mystique <= 25

    def test_components_are_deterministic(self):
        seed = derive_seed("user-1", "payload")

        assert components_from_seed(seed) == components_from_seed(seed)

    def test_components_follow_weighted_draws(self):
        """Test each component is its weighted pre-weight draw."""
        seed = derive_seed("user-7", "payload")
        components = components_from_seed(seed)

        assert components.symmetry == round_half_up(deterministic_random(seed + "symmetry", 60, 95) * 0.35)
        assert components.vibe == round_half_up(deterministic_random(seed + "vibe", 55, 90) * 0.40)
        assert components.mystique == round_half_up(deterministic_random(seed + "mystique", 50, 85) * 0.25)


class TestComposeTotal:
    """Test cases for the total score composer."""

    def test_total_within_band(self):
        """Test the published total never leaves 55-95."""
        for symmetry in range(0, 36, 5):
            for vibe in range(0, 41, 5):
                for mystique in range(0, 26, 5):
                    total = compose_total(ScoreComponents(symmetry, vibe, mystique))
                    assert 55 <= total <= 95

    def test_total_is_sum_plus_jitter(self):
        """Test an in-band sum is adjusted by the jitter drawn from the sum."""
        components = ScoreComponents(symmetry=28, vibe=30, mystique=17)
        adjustment = deterministic_random("75", -2, 2)

        assert compose_total(components) == 75 + adjustment

    def test_low_sum_is_clamped_to_floor(self):
        total = compose_total(ScoreComponents(symmetry=0, vibe=0, mystique=0))

        assert 55 <= total <= 57

    def test_high_sum_is_clamped_to_ceiling(self):
        total = compose_total(ScoreComponents(symmetry=35, vibe=40, mystique=25))

        assert 93 <= total <= 95


class TestGenerateScore:
    """Test cases for full score generation."""

    def test_generate_instant_is_deterministic(self):
        """Test repeated generation yields identical scores apart from timing."""
        first = generate_score_instant("user-1", "payload")
        second = generate_score_instant("user-1", "payload")

        assert first.total_score == second.total_score
        assert first.components == second.components
        assert validate_score(first)

    def test_timestamp_format(self):
        result = generate_score_instant("user-1", "payload")

        assert result.timestamp.endswith("Z")
        assert len(result.timestamp) == len("2025-01-01T12:00:00.000Z")

    @pytest.mark.asyncio
    async def test_generate_without_delay_does_not_sleep(self):
        with patch('aurum_score.services.score_generator.asyncio.sleep', new=AsyncMock()) as mock_sleep:
            result = await generate_score("user-1", "payload")

        mock_sleep.assert_not_called()
        assert result.total_score == generate_score_instant("user-1", "payload").total_score

    @pytest.mark.asyncio
    async def test_generate_with_simulated_delay(self):
        """Test the simulated delay is deterministic and within 2-4 seconds."""
        delay_ms = simulated_delay_ms("user-1", "payload")
        assert 2000 <= delay_ms <= 4000

        with patch('aurum_score.services.score_generator.asyncio.sleep', new=AsyncMock()) as mock_sleep:
            result = await generate_score("user-1", "payload", simulate_delay=True)

        mock_sleep.assert_awaited_once_with(delay_ms / 1000)
        assert validate_score(result)


class TestKnownScores:
    """Fixed inputs whose scores must stay stable across releases and runtimes."""

    @pytest.mark.parametrize("user_id,payload,components,total,delay_ms", [
        ("user-1", "payload", (33, 30, 16), 77, 2737),
        ("u12345", "data:image/jpeg;base64,AAAA", (22, 24, 17), 61, 3608),
        ("alice", "selfie-2024-01-01.jpg", (23, 26, 15), 62, 2697),
    ])
    def test_known_vectors(self, user_id, payload, components, total, delay_ms):
        result = generate_score_instant(user_id, payload)

        assert result.components == ScoreComponents(*components)
        assert result.total_score == total
        assert simulated_delay_ms(user_id, payload) == delay_ms


class TestValidateScore:
    """Test cases for score validation."""

    def _result(self, total=70, symmetry=25, vibe=30, mystique=15, processing=1):
        return ScoreResult(
            total_score=total,
            components=ScoreComponents(symmetry, vibe, mystique),
            processing_time_ms=processing,
            timestamp="2025-01-01T12:00:00.000Z"
        )

    def test_valid_score(self):
        assert validate_score(self._result()) is True

    @pytest.mark.parametrize("overrides", [
        {"total": 54},
        {"total": 96},
        {"symmetry": 36},
        {"vibe": 41},
        {"mystique": 26},
        {"mystique": -1},
        {"processing": -1},
    ])
    def test_out_of_range_scores_rejected(self, overrides):
        assert validate_score(self._result(**overrides)) is False
