"""Cryptographically secure randomness for lottery draws."""
from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Protocol


class ByteSource(Protocol):
    """Anything able to hand out random bytes."""

    def read(self, size: int) -> bytes:
        """Return ``size`` random bytes."""


class SystemByteSource:
    """Operating system CSPRNG."""

    def read(self, size: int) -> bytes:
        return secrets.token_bytes(size)


class HmacDrbgByteSource:
    """HMAC-SHA256 deterministic random bit generator (SP 800-90A, no reseeding).

    Two generators instantiated with the same seed emit the same byte stream,
    which lets a published draw seed be replayed by anyone.
    """

    _OUTLEN = hashlib.sha256().digest_size

    def __init__(self, seed: bytes, personalization: bytes = b"") -> None:
        if not seed:
            raise ValueError("seed must not be empty")
        self._key = b"\x00" * self._OUTLEN
        self._value = b"\x01" * self._OUTLEN
        self._update(seed + personalization)

    @classmethod
    def from_hex(cls, seed_hex: str, personalization: bytes = b"") -> "HmacDrbgByteSource":
        return cls(bytes.fromhex(seed_hex), personalization)

    def _hmac(self, key: bytes, data: bytes) -> bytes:
        return hmac.new(key, data, hashlib.sha256).digest()

    def _update(self, provided: bytes = b"") -> None:
        self._key = self._hmac(self._key, self._value + b"\x00" + provided)
        self._value = self._hmac(self._key, self._value)
        if provided:
            self._key = self._hmac(self._key, self._value + b"\x01" + provided)
            self._value = self._hmac(self._key, self._value)

    def read(self, size: int) -> bytes:
        output = bytearray()
        while len(output) < size:
            self._value = self._hmac(self._key, self._value)
            output.extend(self._value)
        self._update()
        return bytes(output[:size])


class SecureRandomSource:
    """Uniform integer generator free of modulo bias."""

    def __init__(self, byte_source: ByteSource | None = None) -> None:
        self._bytes = byte_source or SystemByteSource()

    def uniform_int(self, minimum: int, maximum: int) -> int:
        """Return an integer uniformly distributed in ``[minimum, maximum]``.

        Raw values falling in the tail ``[limit - limit % span, limit)`` are
        discarded and redrawn.
        """
        if maximum < minimum:
            raise ValueError(f"empty range [{minimum}, {maximum}]")
        span = maximum - minimum + 1
        if span == 1:
            return minimum
        width = ((span - 1).bit_length() + 7) // 8
        limit = 256**width
        ceiling = limit - (limit % span)
        while True:
            value = int.from_bytes(self._bytes.read(width), "big")
            if value < ceiling:
                return minimum + (value % span)


def random_seed_hex(num_bytes: int = 32) -> str:
    """Return a fresh hex seed published alongside a draw."""
    return secrets.token_hex(num_bytes)


def ball_number(user_id: object) -> int:
    """Derive the six digit display ball number of a user.

    Not secret and not unique: it is the leading 32 bits of ``SHA256(user_id)``
    reduced modulo one million.
    """
    digest = hashlib.sha256(str(user_id).encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % 1_000_000


__all__ = [
    "ByteSource",
    "HmacDrbgByteSource",
    "SecureRandomSource",
    "SystemByteSource",
    "ball_number",
    "random_seed_hex",
]
