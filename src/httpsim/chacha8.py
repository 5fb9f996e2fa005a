# src/httpsim/chacha8.py
"""ChaCha8 pseudo-random stream.

Bit-exact with the ``chacha8rand`` generator: four ChaCha8 blocks are
computed per refill with their 32-bit words interleaved, yielding 32
little-endian uint64 values. Every fourth refill yields only 28 values;
the remaining 4 become the seed for the next group of blocks.

Bounded integers use the unbiased multiply-high reduction with rejection
(powers of two are masked), so a seed and call sequence reproduce the
exact same integers on every run.
"""

from __future__ import annotations

_MASK32 = 0xFFFF_FFFF
_MASK64 = 0xFFFF_FFFF_FFFF_FFFF

_CHUNK = 32
_CTR_INC = 4
_CTR_MAX = 16
_RESEED = 4

# "expand 32-byte k"
_CONSTANTS = (0x61707865, 0x3320646E, 0x79622D32, 0x6B206574)


def _rotl(x: int, n: int) -> int:
    return ((x << n) | (x >> (32 - n))) & _MASK32


def _quarter_round(x: list[int], a: int, b: int, c: int, d: int) -> None:
    x[a] = (x[a] + x[b]) & _MASK32
    x[d] = _rotl(x[d] ^ x[a], 16)
    x[c] = (x[c] + x[d]) & _MASK32
    x[b] = _rotl(x[b] ^ x[c], 12)
    x[a] = (x[a] + x[b]) & _MASK32
    x[d] = _rotl(x[d] ^ x[a], 8)
    x[c] = (x[c] + x[d]) & _MASK32
    x[b] = _rotl(x[b] ^ x[c], 7)


def _block(seed: tuple[int, int, int, int], counter: int) -> list[int]:
    """Compute four interleaved ChaCha8 blocks as 32 uint64 words."""
    key: list[int] = []
    for word in seed:
        key.append(word & _MASK32)
        key.append(word >> 32)

    # lanes[lane][row]
    lanes: list[list[int]] = []
    for lane in range(4):
        x = [*_CONSTANTS, *key, (counter + lane) & _MASK32, 0, 0, 0]
        for _ in range(4):
            _quarter_round(x, 0, 4, 8, 12)
            _quarter_round(x, 1, 5, 9, 13)
            _quarter_round(x, 2, 6, 10, 14)
            _quarter_round(x, 3, 7, 11, 15)
            _quarter_round(x, 0, 5, 10, 15)
            _quarter_round(x, 1, 6, 11, 12)
            _quarter_round(x, 2, 7, 8, 13)
            _quarter_round(x, 3, 4, 9, 14)
        # Only the key rows are fed forward.
        for row in range(4, 12):
            x[row] = (x[row] + key[row - 4]) & _MASK32
        lanes.append(x)

    buf: list[int] = []
    for row in range(16):
        buf.append(lanes[0][row] | (lanes[1][row] << 32))
        buf.append(lanes[2][row] | (lanes[3][row] << 32))
    return buf


class ChaCha8:
    """Deterministic uint64 stream seeded with 32 bytes.

    Not thread-safe; callers sharing an instance must serialize access.
    """

    def __init__(self, seed: bytes) -> None:
        if len(seed) != 32:
            raise ValueError(f"ChaCha8 seed must be 32 bytes, got {len(seed)}")
        self._seed = (
            int.from_bytes(seed[0:8], "little"),
            int.from_bytes(seed[8:16], "little"),
            int.from_bytes(seed[16:24], "little"),
            int.from_bytes(seed[24:32], "little"),
        )
        self._buf = _block(self._seed, 0)
        self._counter = 0
        self._index = 0
        self._limit = _CHUNK

    def _refill(self) -> None:
        self._counter += _CTR_INC
        if self._counter == _CTR_MAX:
            tail = self._buf[len(self._buf) - _RESEED :]
            self._seed = (tail[0], tail[1], tail[2], tail[3])
            self._counter = 0
        self._buf = _block(self._seed, self._counter)
        self._index = 0
        self._limit = len(self._buf)
        if self._counter == _CTR_MAX - _CTR_INC:
            self._limit = len(self._buf) - _RESEED

    def uint64(self) -> int:
        """Return the next uint64 from the stream."""
        if self._index >= self._limit:
            self._refill()
        value = self._buf[self._index]
        self._index += 1
        return value

    def uint64n(self, n: int) -> int:
        """Return a uniform integer in [0, n).

        Raises:
            ValueError: If n is not in (0, 2**64).
        """
        if n <= 0 or n > _MASK64:
            raise ValueError(f"invalid bound for uint64n: {n}")
        if n & (n - 1) == 0:
            return self.uint64() & (n - 1)
        product = self.uint64() * n
        hi, lo = product >> 64, product & _MASK64
        if lo < n:
            threshold = ((1 << 64) - n) % n
            while lo < threshold:
                product = self.uint64() * n
                hi, lo = product >> 64, product & _MASK64
        return hi
