"""Streaming MD5 + SHA-256 digest accumulation."""

import hashlib
from dataclasses import dataclass


@dataclass(frozen=True)
class Digest:
    """
    Finalized digests of a byte sequence.
    """
    md5: bytes
    sha256: bytes
    size: int

    @property
    def md5_hex(self) -> str:
        return self.md5.hex()

    @property
    def sha256_hex(self) -> str:
        return self.sha256.hex()


class DigestAccumulator:
    """
    Calculate MD5 and SHA-256 incrementally for streaming data.

    Usage:
        accumulator = DigestAccumulator()
        accumulator.update(piece1)
        accumulator.update(piece2)
        digest = accumulator.finalize()
        accumulator = accumulator.reset()
    """

    def __init__(self):
        self._md5 = hashlib.md5()
        self._sha256 = hashlib.sha256()
        self._size = 0
        self._finalized = False

    @property
    def size(self) -> int:
        """Number of bytes fed so far."""
        return self._size

    def update(self, data) -> None:
        """
        Feed bytes in arrival order. Zero-length buffers are accepted.

        Args:
            data: bytes-like object
        """
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        if not data:
            return
        self._md5.update(data)
        self._sha256.update(data)
        self._size += len(data)

    def finalize(self) -> Digest:
        """
        Finalize the calculation and return the digests.

        Returns:
            Digest with raw md5/sha256 bytes and the byte count
        """
        self._finalized = True
        return Digest(
            md5=self._md5.digest(),
            sha256=self._sha256.digest(),
            size=self._size,
        )

    def reset(self) -> "DigestAccumulator":
        """Return a fresh accumulator; digests finalized earlier are unaffected."""
        return DigestAccumulator()
