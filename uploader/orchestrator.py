"""
Multipart upload state machine.

INIT -> INITIATED -> UPLOADING -> COMPLETED | ABORTED

Parts are uploaded concurrently on a bounded worker pool. The first part
failure stops scheduling, in-flight parts settle, exactly one abort request
is issued, and the original failure is re-raised.
"""

import asyncio
from pathlib import Path
from typing import List, Optional, Union

from common.constants import S3_MAX_PARTS
from common.exceptions import AbortError, UploadError
from common.logging_config import get_logger
from common.types import FileDigest, PartPlan, PartResult, SessionState, UploadOutcome, UploadSession
from uploader.chunker import chunk_file
from uploader.config import UploadConfig
from uploader.part_uploader import PartUploader
from uploader.s3_client import S3Client

logger = get_logger(__name__)


class UploadOrchestrator:
    """
    Drives one multipart upload attempt for one file.

    A fresh orchestrator is used per attempt; nothing is retried here.
    """

    def __init__(self, config: UploadConfig, client: Optional[S3Client] = None):
        """
        Args:
            config: Upload configuration
            client: Optional S3Client; one is created (and closed) per upload when omitted

        Raises:
            ValueError: If the configuration names no object key
        """
        if not config.key:
            raise ValueError("An object key is required to upload")
        self.config = config
        self.client = client
        self.session = UploadSession(bucket=config.bucket, key=config.key)

    async def upload(self, file_path: Union[str, Path]) -> UploadOutcome:
        """
        Chunk, initiate, upload every part, then complete the upload.

        Returns:
            UploadOutcome describing the committed object

        Raises:
            UploadIOError / EmptyFileError: Before any network call if the file cannot be chunked
            UploadError: Any failure after initiation, once the abort request has been issued
        """
        if self.session.state is not SessionState.INIT:
            raise UploadError(f"Upload session already {self.session.state.value}; use a new orchestrator")

        file_path = str(file_path)
        loop = asyncio.get_running_loop()
        digest = await loop.run_in_executor(None, chunk_file, file_path, self.config.chunk_size_bytes)

        if len(digest.chunks) > S3_MAX_PARTS:
            raise UploadError(
                f"{file_path} needs {len(digest.chunks)} parts, above the limit of {S3_MAX_PARTS}; "
                f"increase chunk_size_bytes"
            )

        client = self.client or S3Client(self.config)
        try:
            return await self._run(client, file_path, digest)
        finally:
            if self.client is None:
                await client.close()

    async def _run(self, client: S3Client, file_path: str, digest: FileDigest) -> UploadOutcome:
        upload_id = await client.initiate_multipart_upload(self.config.key)
        self.session = self.session.transition(SessionState.INITIATED, upload_id=upload_id)

        try:
            self.session = self.session.transition(SessionState.UPLOADING)
            parts = await self._upload_parts(client, file_path, digest, upload_id)
            result = await client.complete_multipart_upload(upload_id, parts, self.config.key)
        except asyncio.CancelledError as error:
            logger.warning(f"Upload cancelled [upload_id={upload_id}]")
            await asyncio.shield(self._abort(client, upload_id, error))
            raise
        except Exception as error:
            await self._abort(client, upload_id, error)
            raise

        self.session = self.session.transition(SessionState.COMPLETED)
        logger.info(
            f"Upload of {file_path} to {self.config.bucket}/{self.config.key} completed "
            f"[upload_id={upload_id}, parts={len(parts)}, sha256={digest.sha256_hex}]"
        )
        return UploadOutcome(
            session=self.session,
            digest=digest,
            parts=tuple(parts),
            location=result.location,
            etag=result.etag,
        )

    async def _upload_parts(
        self,
        client: S3Client,
        file_path: str,
        digest: FileDigest,
        upload_id: str,
    ) -> List[PartResult]:
        plans = [PartPlan.from_chunk(chunk, upload_id) for chunk in digest.chunks]
        uploader = PartUploader(client, file_path, key=self.config.key)

        semaphore = asyncio.Semaphore(self.config.max_workers)
        abort_signal = asyncio.Event()
        results: List[Optional[PartResult]] = [None] * len(plans)
        failures: List[Exception] = []

        async def run_part(plan: PartPlan) -> None:
            async with semaphore:
                if abort_signal.is_set():
                    logger.debug(f"Skipping part {plan.part_number}, upload is aborting")
                    return
                try:
                    results[plan.part_number - 1] = await uploader.upload_part(plan)
                except Exception as e:
                    logger.error(f"Part {plan.part_number} failed: {e}")
                    failures.append(e)
                    abort_signal.set()

        logger.info(
            f"Uploading {len(plans)} parts with up to {self.config.max_workers} workers "
            f"[upload_id={upload_id}]"
        )
        await asyncio.gather(*(run_part(plan) for plan in plans))

        if failures:
            raise failures[0]
        return [result for result in results if result is not None]

    async def _abort(self, client: S3Client, upload_id: str, error: BaseException) -> None:
        """Issue the single abort request; its own failure never replaces ``error``."""
        logger.warning(f"Aborting upload after failure: {error} [upload_id={upload_id}]")
        if isinstance(error, UploadError):
            error.upload_id = upload_id

        try:
            await client.abort_multipart_upload(upload_id, self.config.key)
        except Exception as abort_failure:
            abort_error = AbortError(upload_id, original=error, cause=abort_failure)
            logger.error(f"{abort_error}; the upload's parts may remain billed until cleaned up")
            if isinstance(error, UploadError):
                error.abort_error = abort_error
        finally:
            self.session = self.session.transition(SessionState.ABORTED)
