"""Tests for the ChaCha8 stream and randomness providers.

The pinned values below are the reference outputs of the chacha8rand
generator for these seeds and call sequences. They must never change:
configurations replayed with a fixed seed depend on them.
"""

from __future__ import annotations

import pytest

from httpsim.chacha8 import ChaCha8
from httpsim.durations import HOUR, SECOND, parse_duration
from httpsim.randomness import (
    DEFAULT_RAND,
    DEFAULT_SEED,
    SEED_SIZE,
    ChaCha8Source,
    InvalidSeedLengthError,
    RandProvider,
    Seed,
)

SEED_ASCENDING = "0123456789abcdef0123456789abcdef"
SEED_DESCENDING = "fedcba9876543210fedcba9876543210"


class TestPinnedSequences:
    """Reference sequences for fixed seeds."""

    def test_ascending_seed(self) -> None:
        """bool, fixed, bounded and hour-range draws for the ascending seed."""
        source = ChaCha8Source(Seed.from_bytes(SEED_ASCENDING))
        assert source.sample_bool() is False
        assert source.sample_duration(SECOND, SECOND) == SECOND
        assert source.sample_duration(SECOND, 2 * SECOND) == parse_duration("1.684999282s")
        assert source.sample_duration(0, HOUR) == parse_duration("25m7.572021725s")

    def test_descending_seed(self) -> None:
        """bool, fixed, bounded and hour-range draws for the descending seed."""
        source = ChaCha8Source(Seed.from_bytes(SEED_DESCENDING))
        assert source.sample_bool() is True
        assert source.sample_duration(SECOND, SECOND) == SECOND
        assert source.sample_duration(SECOND, 2 * SECOND) == parse_duration("1.591265866s")
        assert source.sample_duration(0, HOUR) == parse_duration("47m55.022499822s")

    def test_descending_seed_first_duration(self) -> None:
        """A bounded draw as the first call on the descending seed."""
        source = ChaCha8Source(Seed.from_bytes(SEED_DESCENDING))
        assert source.sample_duration(SECOND, 2 * SECOND) == 1_394_636_475

    def test_same_seed_same_sequence(self) -> None:
        """Two sources with the same seed produce the same draws."""
        a = ChaCha8Source(Seed.from_bytes(SEED_ASCENDING))
        b = ChaCha8Source(Seed.from_bytes(SEED_ASCENDING))
        assert [a.sample_duration(0, HOUR) for _ in range(50)] == [b.sample_duration(0, HOUR) for _ in range(50)]


class TestSampleDuration:
    """Tests for ChaCha8Source.sample_duration()."""

    def test_equal_bounds_return_min(self) -> None:
        """min == max returns min."""
        source = ChaCha8Source(Seed.from_bytes(SEED_ASCENDING))
        assert source.sample_duration(5 * SECOND, 5 * SECOND) == 5 * SECOND

    def test_inverted_bounds_return_min(self) -> None:
        """min > max returns min rather than failing."""
        source = ChaCha8Source(Seed.from_bytes(SEED_ASCENDING))
        assert source.sample_duration(3 * SECOND, SECOND) == 3 * SECOND

    def test_degenerate_bounds_do_not_consume(self) -> None:
        """Fixed delays leave the stream untouched."""
        a = ChaCha8Source(Seed.from_bytes(SEED_DESCENDING))
        a.sample_duration(SECOND, SECOND)
        b = ChaCha8Source(Seed.from_bytes(SEED_DESCENDING))
        assert a.sample_duration(SECOND, 2 * SECOND) == b.sample_duration(SECOND, 2 * SECOND)

    def test_result_in_half_open_range(self) -> None:
        """Draws stay within [min, max)."""
        source = ChaCha8Source(Seed.from_bytes(SEED_ASCENDING))
        for _ in range(200):
            value = source.sample_duration(100, 107)
            assert 100 <= value < 107


class TestSeed:
    """Tests for Seed construction."""

    @pytest.mark.parametrize(
        "value",
        ["", "too short", "0123456789abcdef0123456789abcdef too long"],
    )
    def test_wrong_length_rejected(self, value: str) -> None:
        """Seeds that are not exactly 32 bytes are rejected."""
        with pytest.raises(InvalidSeedLengthError, match="32 bytes"):
            Seed.from_bytes(value)

    def test_length_counts_utf8_bytes(self) -> None:
        """String length is measured after UTF-8 encoding."""
        with pytest.raises(InvalidSeedLengthError):
            Seed.from_bytes("щ" * 32)
        assert Seed.from_bytes("щ" * 16).value == ("щ" * 16).encode()

    def test_bytes_accepted(self) -> None:
        """A 32-byte bytes value is used as is."""
        assert Seed.from_bytes(bytes(range(32))).value == bytes(range(32))

    def test_error_is_value_error(self) -> None:
        """InvalidSeedLengthError can be caught as ValueError."""
        assert issubclass(InvalidSeedLengthError, ValueError)

    def test_from_entropy(self) -> None:
        """Entropy seeds have the right size and are not all zero."""
        seed = Seed.from_entropy()
        assert len(seed.value) == SEED_SIZE
        assert seed.value != bytes(SEED_SIZE)

    def test_repr_is_hex(self) -> None:
        """repr() shows the seed as hex."""
        assert repr(Seed.from_bytes(bytes(32))) == f"Seed({'00' * 32})"


class TestDefaultRand:
    """Tests for the process-wide default source."""

    def test_default_rand_is_provider(self) -> None:
        """DEFAULT_RAND satisfies RandProvider."""
        assert isinstance(DEFAULT_RAND, RandProvider)

    def test_default_seed_exposed(self) -> None:
        """The default seed is available and non-zero."""
        assert DEFAULT_RAND.seed is DEFAULT_SEED
        assert DEFAULT_SEED.value != bytes(SEED_SIZE)

    def test_default_rand_callable(self) -> None:
        """Fixed durations come back unchanged; booleans can be drawn."""
        assert DEFAULT_RAND.sample_duration(SECOND, SECOND) == SECOND
        assert isinstance(DEFAULT_RAND.sample_bool(), bool)


class TestChaCha8:
    """Tests for the raw ChaCha8 stream."""

    def test_rejects_wrong_seed_size(self) -> None:
        """The raw stream requires exactly 32 seed bytes."""
        with pytest.raises(ValueError, match="32 bytes"):
            ChaCha8(b"short")

    def test_survives_reseed_boundaries(self) -> None:
        """Draws past several reseeds stay deterministic."""
        a = ChaCha8(SEED_ASCENDING.encode())
        b = ChaCha8(SEED_ASCENDING.encode())
        # A reseed happens every 124 values.
        first = [a.uint64() for _ in range(400)]
        assert first == [b.uint64() for _ in range(400)]
        assert all(0 <= value < 2**64 for value in first)
        assert len(set(first)) == len(first)

    @pytest.mark.parametrize("bound", [0, -1, 2**64])
    def test_uint64n_rejects_invalid_bounds(self, bound: int) -> None:
        """Bounds outside (0, 2**64) are rejected."""
        with pytest.raises(ValueError, match="invalid bound"):
            ChaCha8(bytes(32)).uint64n(bound)

    def test_uint64n_power_of_two_masks(self) -> None:
        """Power-of-two bounds use the low bits of the next value."""
        a = ChaCha8(bytes(32))
        b = ChaCha8(bytes(32))
        assert a.uint64n(1024) == b.uint64() & 1023

    def test_uint64n_one_is_zero(self) -> None:
        """A bound of one always yields zero."""
        assert ChaCha8(bytes(32)).uint64n(1) == 0
