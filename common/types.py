"""Shared data type definitions (ChunkDescriptor, FileDigest, PartPlan, UploadSession, etc.)."""

import base64
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from common.exceptions import InvalidStateTransition


@dataclass(frozen=True)
class ChunkDescriptor:
    """
    Byte range of the source file plus its digests.
    """
    index: int
    offset: int
    length: int
    md5: bytes
    sha256: bytes

    @property
    def md5_hex(self) -> str:
        return self.md5.hex()

    @property
    def sha256_hex(self) -> str:
        return self.sha256.hex()

    @property
    def md5_base64(self) -> str:
        return base64.b64encode(self.md5).decode("ascii")


@dataclass(frozen=True)
class FileDigest:
    """
    Whole-file digests and the ordered chunk layout.
    """
    size: int
    md5: bytes
    sha256: bytes
    chunks: Tuple[ChunkDescriptor, ...]

    @property
    def md5_hex(self) -> str:
        return self.md5.hex()

    @property
    def sha256_hex(self) -> str:
        return self.sha256.hex()


@dataclass(frozen=True)
class Credentials:
    """
    Long-term (or session) credentials used to derive signing keys.
    """
    access_key: str
    secret_key: str = field(repr=False)
    session_token: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class SignedRequest:
    """
    Fully signed request, valid only for the timestamp it was signed at.
    """
    method: str
    url: str
    headers: Dict[str, str]
    body_hash_hex: str
    canonical_request: str = field(default="", repr=False)
    string_to_sign: str = field(default="", repr=False)


@dataclass(frozen=True)
class PartPlan:
    """
    Everything needed to upload one part, derived from a ChunkDescriptor.
    """
    part_number: int
    upload_id: str
    offset: int
    size: int
    md5: bytes
    sha256: bytes

    @classmethod
    def from_chunk(cls, chunk: ChunkDescriptor, upload_id: str) -> "PartPlan":
        return cls(
            part_number=chunk.index + 1,
            upload_id=upload_id,
            offset=chunk.offset,
            size=chunk.length,
            md5=chunk.md5,
            sha256=chunk.sha256,
        )

    @property
    def md5_base64(self) -> str:
        return base64.b64encode(self.md5).decode("ascii")

    @property
    def sha256_hex(self) -> str:
        return self.sha256.hex()


@dataclass(frozen=True)
class PartResult:
    """
    Server-issued identifier of an uploaded part.
    """
    part_number: int
    etag: str


class SessionState(Enum):
    INIT = "init"
    INITIATED = "initiated"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ABORTED = "aborted"


_ALLOWED_TRANSITIONS = {
    SessionState.INIT: {SessionState.INITIATED},
    SessionState.INITIATED: {SessionState.UPLOADING, SessionState.ABORTED},
    SessionState.UPLOADING: {SessionState.COMPLETED, SessionState.ABORTED},
    SessionState.COMPLETED: set(),
    SessionState.ABORTED: set(),
}


@dataclass(frozen=True)
class UploadSession:
    """
    Multipart upload session; ``transition`` returns the session in its next state.
    """
    bucket: str
    key: str
    upload_id: Optional[str] = None
    state: SessionState = SessionState.INIT

    def transition(self, new_state: SessionState, upload_id: Optional[str] = None) -> "UploadSession":
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise InvalidStateTransition(
                f"Upload session cannot move from {self.state.value} to {new_state.value}"
            )
        return replace(self, state=new_state, upload_id=upload_id or self.upload_id)

    @property
    def is_terminal(self) -> bool:
        return self.state in (SessionState.COMPLETED, SessionState.ABORTED)


@dataclass(frozen=True)
class UploadOutcome:
    """
    Result of a completed multipart upload.
    """
    session: UploadSession
    digest: FileDigest
    parts: Tuple[PartResult, ...]
    location: Optional[str] = None
    etag: Optional[str] = None
