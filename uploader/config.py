"""Validated configuration value for an upload."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from common.constants import (
    DEFAULT_CHUNK_SIZE_BYTES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_REGION,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    S3_MIN_PART_SIZE_BYTES,
)
from common.logging_config import get_logger
from common.types import Credentials

logger = get_logger(__name__)


class UploadConfig(BaseModel):
    """Everything an upload needs: credentials, target and tuning."""

    access_key: str = Field(min_length=1)
    secret_key: str = Field(min_length=1, repr=False)
    session_token: Optional[str] = Field(default=None, repr=False)
    region: str = DEFAULT_REGION
    bucket: str = Field(min_length=1)
    key: Optional[str] = None
    chunk_size_bytes: int = Field(default=DEFAULT_CHUNK_SIZE_BYTES, gt=0)
    endpoint_url: Optional[str] = None
    addressing_style: Literal["virtual", "path"] = "virtual"
    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1)
    request_timeout_seconds: float = Field(default=DEFAULT_REQUEST_TIMEOUT_SECONDS, gt=0)

    @field_validator("key")
    @classmethod
    def _strip_leading_slash(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        key = value.lstrip("/")
        if not key:
            raise ValueError("Object key cannot be empty")
        return key

    @field_validator("chunk_size_bytes")
    @classmethod
    def _warn_small_chunks(cls, value: int) -> int:
        if value < S3_MIN_PART_SIZE_BYTES:
            logger.warning(
                f"Chunk size {value} is below the S3 minimum part size of "
                f"{S3_MIN_PART_SIZE_BYTES}; only S3-compatible servers without the limit will accept it"
            )
        return value

    @property
    def credentials(self) -> Credentials:
        return Credentials(
            access_key=self.access_key,
            secret_key=self.secret_key,
            session_token=self.session_token,
        )
