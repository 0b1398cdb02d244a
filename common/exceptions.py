"""Custom exception classes for the multipart uploader."""

from typing import Optional


class UploadError(Exception):
    """
    Base exception class for all upload-related errors.

    Errors raised after an upload session was initiated carry its
    ``upload_id``. When the abort request that followed the failure also
    failed, ``abort_error`` describes that secondary failure.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.upload_id: Optional[str] = None
        self.abort_error: Optional["AbortError"] = None


class UploadIOError(UploadError):
    """
    Raised when the local file is unreadable or shorter than expected.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class EmptyFileError(UploadIOError):
    """
    Raised when asked to upload a zero-byte file.
    """
    pass


class PartVerificationError(UploadIOError):
    """
    Raised when the bytes transmitted for a part do not match its precomputed digest.
    """

    def __init__(self, part_number: int, expected: str, actual: str, path: Optional[str] = None):
        super().__init__(
            f"Part {part_number} body does not match its digest "
            f"(expected sha256 {expected}, sent {actual})",
            path=path,
        )
        self.part_number = part_number
        self.expected = expected
        self.actual = actual


class TransportError(UploadError):
    """
    Raised on connection, DNS, TLS or timeout failures talking to the service.
    """

    def __init__(self, message: str, method: Optional[str] = None, url: Optional[str] = None):
        super().__init__(message)
        self.method = method
        self.url = url


class AwsProtocolError(UploadError):
    """
    Raised when the service answers with an ``Error`` document.
    """

    def __init__(
        self,
        code: str,
        message: str,
        request_id: Optional[str] = None,
        host_id: Optional[str] = None,
        resource: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.request_id = request_id
        self.host_id = host_id
        self.resource = resource
        self.status_code = status_code

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class SignatureMismatchError(AwsProtocolError):
    """
    Raised for ``SignatureDoesNotMatch``; keeps what the service computed so
    the signature can be recomputed offline.
    """

    def __init__(
        self,
        code: str,
        message: str,
        request_id: Optional[str] = None,
        host_id: Optional[str] = None,
        resource: Optional[str] = None,
        status_code: Optional[int] = None,
        access_key_id: Optional[str] = None,
        string_to_sign: Optional[str] = None,
        canonical_request: Optional[str] = None,
    ):
        super().__init__(
            code,
            message,
            request_id=request_id,
            host_id=host_id,
            resource=resource,
            status_code=status_code,
        )
        self.access_key_id = access_key_id
        self.string_to_sign = string_to_sign
        self.canonical_request = canonical_request


class MalformedResponseError(UploadError):
    """
    Raised when a response is missing an expected field or cannot be parsed.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AbortError(UploadError):
    """
    Raised (or attached to the original error) when aborting an upload fails.
    """

    def __init__(self, upload_id: str, original: BaseException, cause: BaseException):
        super().__init__(f"Failed to abort upload {upload_id}: {cause}")
        self.upload_id = upload_id
        self.original = original
        self.cause = cause


class InvalidStateTransition(UploadError):
    """
    Raised when an upload session is moved to a state it cannot reach.
    """
    pass
