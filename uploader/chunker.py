"""Splits a local file into fixed-size chunks and digests each one in a single pass."""

import asyncio
import os
from typing import AsyncIterator, List, Tuple

from common.constants import READ_BUFFER_SIZE, STREAM_PIECE_SIZE_BYTES
from common.exceptions import EmptyFileError, UploadIOError
from common.logging_config import get_logger
from common.types import ChunkDescriptor, FileDigest
from uploader.digest import DigestAccumulator

logger = get_logger(__name__)


def plan_chunks(file_size: int, chunk_size: int) -> List[Tuple[int, int]]:
    """
    Compute the (offset, length) layout of a file of ``file_size`` bytes.

    Every chunk but the last is exactly ``chunk_size`` bytes long.

    Raises:
        ValueError: If chunk_size is not positive or file_size is negative
    """
    if chunk_size <= 0:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")
    if file_size < 0:
        raise ValueError(f"File size cannot be negative, got {file_size}")

    return [
        (offset, min(chunk_size, file_size - offset))
        for offset in range(0, file_size, chunk_size)
    ]


class ChunkingDigester:
    """
    Push-based chunker: feed buffers of any size, get per-chunk and whole-file digests.

    Buffers may be smaller than a chunk, larger than a chunk or span several
    chunk boundaries; the emitted chunks depend only on the byte sequence.
    """

    def __init__(self, chunk_size: int):
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size
        self._file = DigestAccumulator()
        self._chunk = DigestAccumulator()
        self._chunks: List[ChunkDescriptor] = []
        self._finished = False

    @property
    def chunks(self) -> Tuple[ChunkDescriptor, ...]:
        """Chunks completed so far."""
        return tuple(self._chunks)

    def feed(self, data) -> None:
        """
        Consume the next buffer of the stream.

        Args:
            data: bytes-like object; zero-length buffers are ignored
        """
        if self._finished:
            raise ValueError("Cannot feed after finish")

        view = memoryview(data)
        while len(view) > 0:
            bytes_left_in_chunk = self.chunk_size - self._chunk.size
            if len(view) <= bytes_left_in_chunk:
                self._update(view)
                break

            self._update(view[:bytes_left_in_chunk])
            self._emit_chunk()
            view = view[bytes_left_in_chunk:]

    def finish(self) -> FileDigest:
        """
        Close the stream, emitting the trailing (possibly short) chunk.

        Raises:
            EmptyFileError: If no bytes were fed
        """
        if self._finished:
            raise ValueError("finish() called twice")
        self._finished = True

        if self._chunk.size > 0:
            self._emit_chunk()

        whole = self._file.finalize()
        if whole.size == 0:
            raise EmptyFileError("Refusing to upload an empty file")

        return FileDigest(
            size=whole.size,
            md5=whole.md5,
            sha256=whole.sha256,
            chunks=tuple(self._chunks),
        )

    def _update(self, view: memoryview) -> None:
        self._file.update(view)
        self._chunk.update(view)

    def _emit_chunk(self) -> None:
        index = len(self._chunks)
        digest = self._chunk.finalize()
        self._chunks.append(
            ChunkDescriptor(
                index=index,
                offset=index * self.chunk_size,
                length=digest.size,
                md5=digest.md5,
                sha256=digest.sha256,
            )
        )
        self._chunk = self._chunk.reset()


def chunk_file(path: str, chunk_size: int, read_size: int = READ_BUFFER_SIZE) -> FileDigest:
    """
    Stream a file once, computing the digest of every chunk and of the whole file.

    Args:
        path: Path of the file to read
        chunk_size: Size of every chunk except possibly the last
        read_size: Size of each read from disk

    Returns:
        FileDigest covering the whole file

    Raises:
        UploadIOError: If the file cannot be read or changes size while it is read
        EmptyFileError: If the file is empty
        ValueError: If chunk_size is not positive
    """
    digester = ChunkingDigester(chunk_size)

    try:
        with open(path, 'rb') as f:
            expected_size = os.fstat(f.fileno()).st_size
            while True:
                data = f.read(read_size)
                if not data:
                    break
                digester.feed(data)
    except OSError as e:
        raise UploadIOError(f"Cannot read {path}: {e}", path=str(path)) from e

    file_digest = digester.finish()
    layout = [(chunk.offset, chunk.length) for chunk in file_digest.chunks]
    if layout != plan_chunks(expected_size, chunk_size):
        raise UploadIOError(
            f"{path} changed while chunking: expected {expected_size} bytes, read {file_digest.size}",
            path=str(path),
        )
    logger.info(
        f"Chunked {path}: {file_digest.size} bytes in {len(file_digest.chunks)} chunks "
        f"[md5={file_digest.md5_hex}, sha256={file_digest.sha256_hex}]"
    )
    return file_digest


async def read_range(
    path: str,
    offset: int,
    length: int,
    piece_size: int = STREAM_PIECE_SIZE_BYTES,
) -> AsyncIterator[bytes]:
    """
    Stream ``length`` bytes starting at ``offset`` from an independent file handle.

    Blocking reads run in the default executor.

    Yields:
        Pieces of at most piece_size bytes

    Raises:
        UploadIOError: If the file cannot be opened or ends before offset + length
    """
    loop = asyncio.get_running_loop()

    try:
        f = await loop.run_in_executor(None, open, path, 'rb')
    except OSError as e:
        raise UploadIOError(f"Cannot open {path}: {e}", path=str(path)) from e

    try:
        await loop.run_in_executor(None, f.seek, offset)
        remaining = length
        while remaining > 0:
            try:
                piece = await loop.run_in_executor(None, f.read, min(piece_size, remaining))
            except OSError as e:
                raise UploadIOError(f"Cannot read {path}: {e}", path=str(path)) from e
            if not piece:
                raise UploadIOError(
                    f"{path} ended {remaining} bytes early reading range "
                    f"[{offset}, {offset + length})",
                    path=str(path),
                )
            remaining -= len(piece)
            yield piece
    finally:
        f.close()
