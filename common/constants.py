"""Project-wide constants (chunk sizes, signing identifiers, timeouts)."""

import hashlib

MIB: int = 1024 * 1024

DEFAULT_CHUNK_SIZE_BYTES: int = 25 * MIB
S3_MIN_PART_SIZE_BYTES: int = 5 * MIB
S3_MAX_PARTS: int = 10000

READ_BUFFER_SIZE: int = 64 * 1024  # granularity of local file reads
STREAM_PIECE_SIZE_BYTES: int = 256 * 1024  # granularity of part body streaming

DEFAULT_REGION: str = "us-east-1"
S3_SERVICE_NAME: str = "s3"
S3_XML_NAMESPACE: str = "http://s3.amazonaws.com/doc/2006-03-01/"

SIGNING_ALGORITHM: str = "AWS4-HMAC-SHA256"
SIGNING_TERMINATOR: str = "aws4_request"
UNSIGNED_PAYLOAD: str = "UNSIGNED-PAYLOAD"
EMPTY_SHA256_HEX: str = hashlib.sha256(b"").hexdigest()

DEFAULT_PRESIGN_EXPIRES_SECONDS: int = 3600
MAX_PRESIGN_EXPIRES_SECONDS: int = 7 * 24 * 3600

DEFAULT_MAX_WORKERS: int = 4
DEFAULT_REQUEST_TIMEOUT_SECONDS: float = 120.0

ERROR_CODE_DEFAULT: str = "AWSProvidedNoCodeError"
ERROR_MESSAGE_DEFAULT: str = "AWS provided no message"
SIGNATURE_MISMATCH_CODE: str = "SignatureDoesNotMatch"
BUCKET_ALREADY_OWNED_CODE: str = "BucketAlreadyOwnedByYou"
NO_SUCH_BUCKET_CODE: str = "NoSuchBucket"
