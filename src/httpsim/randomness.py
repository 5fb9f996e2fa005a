# src/httpsim/randomness.py
"""Randomness providers for delay sampling.

Production code uses ``DEFAULT_RAND``, seeded once per process from the OS
CSPRNG. Tests build a ``ChaCha8Source`` from a fixed ``Seed`` to get the
exact same delays on every run:

    source = ChaCha8Source(Seed.from_bytes("0123456789abcdef0123456789abcdef"))
    source.sample_bool()                          # False
    source.sample_duration(SECOND, 2 * SECOND)    # 1_684_999_282
"""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from httpsim.chacha8 import ChaCha8

SEED_SIZE = 32


class InvalidSeedLengthError(ValueError):
    """Raised when a literal seed is not exactly 32 bytes."""


@runtime_checkable
class RandProvider(Protocol):
    """Source of random delays and booleans."""

    def sample_duration(self, min_ns: int, max_ns: int) -> int:
        """Return a duration in nanoseconds within [min_ns, max_ns)."""
        ...

    def sample_bool(self) -> bool:
        """Return a random boolean."""
        ...


@dataclass(frozen=True, slots=True)
class Seed:
    """A 256-bit stream seed."""

    value: bytes

    def __post_init__(self) -> None:
        if len(self.value) != SEED_SIZE:
            raise InvalidSeedLengthError(f"seed must be {SEED_SIZE} bytes long, got {len(self.value)}")

    @classmethod
    def from_entropy(cls) -> Seed:
        """Create a seed from the OS cryptographic random source."""
        return cls(secrets.token_bytes(SEED_SIZE))

    @classmethod
    def from_bytes(cls, value: bytes | str) -> Seed:
        """Create a fixed seed from a 32-byte value.

        Strings are UTF-8 encoded first; the encoded length must be 32.

        Raises:
            InvalidSeedLengthError: If the value is not exactly 32 bytes.
        """
        if isinstance(value, str):
            value = value.encode("utf-8")
        return cls(bytes(value))

    def __repr__(self) -> str:
        return f"Seed({self.value.hex()})"


class ChaCha8Source:
    """ChaCha8-backed RandProvider.

    Draws are serialized with a lock, so one instance can be shared by
    concurrent requests. Interleaving across requests is not ordered;
    a single caller making sequential calls gets a reproducible sequence.
    """

    def __init__(self, seed: Seed) -> None:
        self._seed = seed
        self._stream = ChaCha8(seed.value)
        self._lock = threading.Lock()

    @property
    def seed(self) -> Seed:
        return self._seed

    def sample_duration(self, min_ns: int, max_ns: int) -> int:
        """Return ``min_ns`` plus a uniform offset in [0, max_ns - min_ns).

        When ``min_ns >= max_ns`` returns ``min_ns`` without drawing.
        """
        if min_ns >= max_ns:
            return min_ns
        with self._lock:
            return min_ns + self._stream.uint64n(max_ns - min_ns)

    def sample_bool(self) -> bool:
        with self._lock:
            return self._stream.uint64n(2) == 1


DEFAULT_SEED = Seed.from_entropy()
DEFAULT_RAND = ChaCha8Source(DEFAULT_SEED)
