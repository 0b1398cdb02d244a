"""Uploads one part: streams its byte range, verifies what was sent, returns the ETag."""

import hashlib
from contextlib import aclosing
from typing import AsyncGenerator, Optional

from common.constants import STREAM_PIECE_SIZE_BYTES
from common.exceptions import MalformedResponseError, PartVerificationError
from common.logging_config import get_logger
from common.types import PartPlan, PartResult
from uploader.chunker import read_range
from uploader.s3_client import S3Client, interpret_response

logger = get_logger(__name__)


class VerifyingStream:
    """
    Async byte stream that hashes every piece as it is handed to the transport.
    """

    def __init__(self, source: AsyncGenerator[bytes, None]):
        self._source = source
        self._sha256 = hashlib.sha256()
        self.bytes_sent = 0

    async def __aiter__(self):
        # Close the source even when the transport stops reading early.
        async with aclosing(self._source) as source:
            async for piece in source:
                self._sha256.update(piece)
                self.bytes_sent += len(piece)
                yield piece

    @property
    def sha256_hex(self) -> str:
        return self._sha256.hexdigest()


class PartUploader:
    """Performs UploadPart requests for one file and object key."""

    def __init__(
        self,
        client: S3Client,
        file_path: str,
        key: Optional[str] = None,
        piece_size: int = STREAM_PIECE_SIZE_BYTES,
    ):
        self.client = client
        self.file_path = str(file_path)
        self.key = key or client.config.key
        self.piece_size = piece_size

    async def upload_part(
        self,
        plan: PartPlan,
        body_source: Optional[AsyncGenerator[bytes, None]] = None,
    ) -> PartResult:
        """
        Upload one part.

        Args:
            plan: Part number, upload ID, byte range and precomputed digests
            body_source: Byte stream for the body; defaults to reading the plan's range of the file

        Returns:
            PartResult with the server-issued ETag

        Raises:
            PartVerificationError: Transmitted bytes differ from the planned digest or length
            UploadIOError: The file could not be read
            AwsProtocolError: Service returned an Error document
            MalformedResponseError: No ETag on success, or an empty/non-error body on failure
            TransportError: Transport failure
        """
        if body_source is None:
            body_source = read_range(self.file_path, plan.offset, plan.size, self.piece_size)
        stream = VerifyingStream(body_source)

        url = self.client.object_url(
            self.key,
            [("partNumber", str(plan.part_number)), ("uploadId", plan.upload_id)],
        )
        headers = {
            "Content-Length": str(plan.size),
            "Content-MD5": plan.md5_base64,
        }

        logger.debug(f"Uploading part {plan.part_number} ({plan.size} bytes at offset {plan.offset})")
        response = await self.client.send(
            "PUT",
            url,
            headers=headers,
            content=stream,
            payload_hash=plan.sha256_hex,
        )

        if stream.bytes_sent != plan.size or stream.sha256_hex != plan.sha256_hex:
            raise PartVerificationError(
                plan.part_number,
                expected=plan.sha256_hex,
                actual=f"{stream.sha256_hex} ({stream.bytes_sent} bytes)",
                path=self.file_path,
            )

        if not response.is_success:
            interpret_response(response, f"PUT part {plan.part_number}")

        etag = response.headers.get("ETag")
        if not etag:
            raise MalformedResponseError(
                f"Part {plan.part_number} upload returned HTTP {response.status_code} without an ETag",
                status_code=response.status_code,
            )

        logger.info(f"Uploaded part {plan.part_number} [etag={etag}]")
        return PartResult(part_number=plan.part_number, etag=etag)
