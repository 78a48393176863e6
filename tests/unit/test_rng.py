from __future__ import annotations

import pytest

from fairdraw.services.rng import HmacDrbgByteSource, SecureRandomSource, ball_number, random_seed_hex


class CountingSource:
    """Replays a fixed byte script and records how much was read."""

    def __init__(self, script: bytes) -> None:
        self._script = script
        self.consumed = 0

    def read(self, size: int) -> bytes:
        chunk = self._script[self.consumed : self.consumed + size]
        self.consumed += size
        return chunk


def test_uniform_int_stays_within_bounds() -> None:
    source = SecureRandomSource()
    values = {source.uniform_int(3, 7) for _ in range(500)}
    assert values <= {3, 4, 5, 6, 7}
    assert len(values) == 5


def test_uniform_int_single_value_range_reads_nothing() -> None:
    source = CountingSource(b"")
    assert SecureRandomSource(source).uniform_int(9, 9) == 9
    assert source.consumed == 0


def test_uniform_int_rejects_empty_range() -> None:
    with pytest.raises(ValueError):
        SecureRandomSource().uniform_int(5, 4)


def test_uniform_int_discards_biased_tail() -> None:
    # Span 3 over one byte: 255 falls in the rejected tail [255, 256).
    source = CountingSource(bytes([255, 4]))
    assert SecureRandomSource(source).uniform_int(0, 2) == 1
    assert source.consumed == 2


def test_hmac_drbg_is_deterministic_per_seed() -> None:
    seed = "ab" * 32
    first = HmacDrbgByteSource.from_hex(seed).read(64)
    second = HmacDrbgByteSource.from_hex(seed).read(64)
    other = HmacDrbgByteSource.from_hex("cd" * 32).read(64)

    assert first == second
    assert first != other
    assert len(first) == 64


def test_hmac_drbg_requires_seed() -> None:
    with pytest.raises(ValueError):
        HmacDrbgByteSource(b"")


def test_random_seed_hex_length() -> None:
    seed = random_seed_hex(32)
    assert len(seed) == 64
    int(seed, 16)


def test_ball_number_is_stable_and_six_digits() -> None:
    assert ball_number("voter-001") == ball_number("voter-001")
    assert 0 <= ball_number("voter-001") < 1_000_000
    assert ball_number(42) == ball_number("42")
