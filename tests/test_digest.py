"""Unit tests for the streaming digest accumulator."""

import hashlib

import pytest

from uploader.digest import DigestAccumulator


def test_empty_accumulator_digests_empty_input():
    digest = DigestAccumulator().finalize()

    assert digest.size == 0
    assert digest.md5_hex == hashlib.md5(b'').hexdigest()
    assert digest.sha256_hex == hashlib.sha256(b'').hexdigest()


def test_zero_length_buffers_are_ignored():
    accumulator = DigestAccumulator()
    accumulator.update(b'')
    accumulator.update(b'abc')
    accumulator.update(memoryview(b''))
    accumulator.update(b'def')

    digest = accumulator.finalize()

    assert digest.size == 6
    assert digest.md5 == hashlib.md5(b'abcdef').digest()
    assert digest.sha256 == hashlib.sha256(b'abcdef').digest()


def test_update_after_finalize_raises():
    accumulator = DigestAccumulator()
    accumulator.finalize()

    with pytest.raises(ValueError):
        accumulator.update(b'x')


def test_reset_returns_fresh_accumulator_and_keeps_finalized_result():
    accumulator = DigestAccumulator()
    accumulator.update(b'first chunk')
    first = accumulator.finalize()

    accumulator = accumulator.reset()
    assert accumulator.size == 0
    accumulator.update(b'second')
    second = accumulator.finalize()

    assert first.sha256 == hashlib.sha256(b'first chunk').digest()
    assert first.size == 11
    assert second.sha256 == hashlib.sha256(b'second').digest()
    assert second.size == 6
