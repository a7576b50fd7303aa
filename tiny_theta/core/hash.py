"""
Hashing functions for tiny-theta.

This module turns arbitrary stream items into 63-bit sampling keys. It
provides a pure Python MurmurHash3 (x64, 128-bit variant) so that keys are
reproducible across processes and platforms, with no external dependencies.
These functions are optimized for distribution quality, not cryptographic
security.
"""

from typing import Any, Tuple

_MASK64 = 0xFFFFFFFFFFFFFFFF

# MurmurHash3 x64_128 constants
_C1 = 0x87C37B91114253D5
_C2 = 0x4CF5AD432745937F


def _to_bytes(key: Any) -> bytes:
    """Convert a stream item into the bytes that get hashed."""
    if isinstance(key, str):
        return key.encode("utf-8")
    if isinstance(key, (bytes, bytearray)):
        return bytes(key)
    if isinstance(key, int) and not isinstance(key, bool):
        if -(1 << 63) <= key < (1 << 63):
            # Same bytes a fixed-width long would produce
            return key.to_bytes(8, "little", signed=True)
    # For other types, use repr() to get a stable string
    return repr(key).encode("utf-8")


def _rotl64(x: int, r: int) -> int:
    return ((x << r) | (x >> (64 - r))) & _MASK64


def _fmix64(k: int) -> int:
    k ^= k >> 33
    k = (k * 0xFF51AFD7ED558CCD) & _MASK64
    k ^= k >> 33
    k = (k * 0xC4CEB9FE1A85EC53) & _MASK64
    k ^= k >> 33
    return k


def murmurhash3_x64_128(key: Any, seed: int = 0) -> Tuple[int, int]:
    """
    Pure Python implementation of MurmurHash3 (x64, 128-bit variant).

    Args:
        key: The key to hash (will be converted to bytes if not already)
        seed: Optional seed for the hash

    Returns:
        The two unsigned 64-bit halves (h1, h2) of the 128-bit hash
    """
    data = _to_bytes(key)
    length = len(data)

    h1 = seed & _MASK64
    h2 = seed & _MASK64

    # Process 16 bytes at a time
    nblocks = length // 16
    for i in range(nblocks):
        offset = i * 16
        k1 = int.from_bytes(data[offset : offset + 8], "little")
        k2 = int.from_bytes(data[offset + 8 : offset + 16], "little")

        k1 = (k1 * _C1) & _MASK64
        k1 = _rotl64(k1, 31)
        k1 = (k1 * _C2) & _MASK64
        h1 ^= k1

        h1 = _rotl64(h1, 27)
        h1 = (h1 + h2) & _MASK64
        h1 = (h1 * 5 + 0x52DCE729) & _MASK64

        k2 = (k2 * _C2) & _MASK64
        k2 = _rotl64(k2, 33)
        k2 = (k2 * _C1) & _MASK64
        h2 ^= k2

        h2 = _rotl64(h2, 31)
        h2 = (h2 + h1) & _MASK64
        h2 = (h2 * 5 + 0x38495AB5) & _MASK64

    # Handle remaining bytes (tail, 0-15 of them)
    tail = data[nblocks * 16 :]
    remaining = len(tail)

    if remaining > 8:
        k2 = int.from_bytes(tail[8:], "little")
        k2 = (k2 * _C2) & _MASK64
        k2 = _rotl64(k2, 33)
        k2 = (k2 * _C1) & _MASK64
        h2 ^= k2
    if remaining > 0:
        k1 = int.from_bytes(tail[:8], "little")
        k1 = (k1 * _C1) & _MASK64
        k1 = _rotl64(k1, 31)
        k1 = (k1 * _C2) & _MASK64
        h1 ^= k1

    # Finalization mixing
    h1 ^= length
    h2 ^= length
    h1 = (h1 + h2) & _MASK64
    h2 = (h2 + h1) & _MASK64
    h1 = _fmix64(h1)
    h2 = _fmix64(h2)
    h1 = (h1 + h2) & _MASK64
    h2 = (h2 + h1) & _MASK64

    return h1, h2


def murmurhash3_64(key: Any, seed: int = 0) -> int:
    """
    64-bit hash of a key: the first half of MurmurHash3 x64_128.

    Args:
        key: The key to hash
        seed: Optional seed for the hash

    Returns:
        Unsigned 64-bit hash value
    """
    return murmurhash3_x64_128(key, seed)[0]


def sampling_key(item: Any, seed: int = 0) -> int:
    """
    Map a stream item to its sampling key.

    The key is the top 63 bits of the 64-bit hash, so it fits a signed
    64-bit slot and compares directly against theta. A result of 0 is
    possible in principle; callers must reject it since 0 marks an empty
    hash table slot.

    Args:
        item: The stream item
        seed: Hash seed; sketches to be intersected must share it

    Returns:
        Sampling key in the range [0, 2^63)
    """
    return murmurhash3_64(item, seed) >> 1
