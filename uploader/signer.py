"""
AWS Signature Version 4 request signing.

Produces either header-signed requests (``Authorization`` + ``X-Amz-Date``)
or query-signed (presigned) URLs. Given the same inputs, including the
timestamp, the output is byte-identical.
"""

import hashlib
import hmac
import urllib.parse
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from common.constants import (
    DEFAULT_PRESIGN_EXPIRES_SECONDS,
    EMPTY_SHA256_HEX,
    MAX_PRESIGN_EXPIRES_SECONDS,
    S3_SERVICE_NAME,
    SIGNING_ALGORITHM,
    SIGNING_TERMINATOR,
    UNSIGNED_PAYLOAD,
)
from common.logging_config import get_logger
from common.types import Credentials, SignedRequest

logger = get_logger(__name__)

_UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)

AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
DATE_STAMP_FORMAT = "%Y%m%d"


class SigningMode(Enum):
    HEADER = "header"
    QUERY = "query"


def uri_encode(value: str, encode_slash: bool = True) -> str:
    """
    Percent-encode using the AWS rules: only A-Z a-z 0-9 - _ . ~ pass through,
    everything else becomes %XX (uppercase hex) of its UTF-8 bytes.
    """
    result: List[str] = []
    for byte in value.encode("utf-8"):
        ch = chr(byte)
        if ch in _UNRESERVED or (ch == "/" and not encode_slash):
            result.append(ch)
        else:
            result.append(f"%{byte:02X}")
    return "".join(result)


def canonical_uri(path: str) -> str:
    """
    S3 canonical URI: decode any existing escapes, then encode once, keeping slashes.

    S3 does not normalize ``.``/``..`` segments or repeated slashes.
    """
    if not path:
        return "/"
    return uri_encode(urllib.parse.unquote(path), encode_slash=False)


def canonical_query_string(params: List[Tuple[str, str]]) -> str:
    """Encode names and values, sort by encoded name then value, join with '&'."""
    encoded = sorted((uri_encode(k), uri_encode(v)) for k, v in params)
    return "&".join(f"{k}={v}" for k, v in encoded)


def canonical_headers(headers: Dict[str, str]) -> Tuple[str, str]:
    """
    Build the canonical header block and the signed-header list.

    Names are lower-cased and sorted; values are trimmed with inner runs of
    whitespace collapsed to one space.

    Returns:
        Tuple of (canonical header lines, semicolon-separated signed header names)
    """
    lowered: Dict[str, str] = {}
    for name, value in headers.items():
        lowered[name.strip().lower()] = " ".join(str(value).split())

    names = sorted(lowered)
    lines = "".join(f"{name}:{lowered[name]}\n" for name in names)
    return lines, ";".join(names)


def build_canonical_request(
    method: str,
    path: str,
    query_params: List[Tuple[str, str]],
    headers: Dict[str, str],
    payload_hash: str,
) -> Tuple[str, str]:
    """
    Build the canonical request string.

    Returns:
        Tuple of (canonical request, signed header names)
    """
    header_block, signed_headers = canonical_headers(headers)
    canonical_request = "\n".join(
        [
            method.upper(),
            canonical_uri(path),
            canonical_query_string(query_params),
            header_block,
            signed_headers,
            payload_hash,
        ]
    )
    return canonical_request, signed_headers


def credential_scope(date_stamp: str, region: str, service: str) -> str:
    return f"{date_stamp}/{region}/{service}/{SIGNING_TERMINATOR}"


def build_string_to_sign(amz_date: str, scope: str, canonical_request: str) -> str:
    return "\n".join(
        [
            SIGNING_ALGORITHM,
            amz_date,
            scope,
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ]
    )


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """HMAC chain: "AWS4"+secret -> date -> region -> service -> "aws4_request"."""
    k_date = _hmac_sha256(("AWS4" + secret_key).encode("utf-8"), date_stamp)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, SIGNING_TERMINATOR)


def _drop_headers(headers: Dict[str, str], names: set) -> Dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in names}


class RequestSigner:
    """
    Signs requests for one credential set, region and service.
    """

    def __init__(self, credentials: Credentials, region: str, service: str = S3_SERVICE_NAME):
        self.credentials = credentials
        self.region = region
        self.service = service

    def sign(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[bytes] = None,
        payload_hash: Optional[str] = None,
        mode: SigningMode = SigningMode.HEADER,
        timestamp: Optional[datetime] = None,
        expires: int = DEFAULT_PRESIGN_EXPIRES_SECONDS,
    ) -> SignedRequest:
        """
        Sign a request.

        Args:
            method: HTTP method
            url: Absolute URL including any query string
            headers: Extra headers to sign and send
            body: Request body, hashed when payload_hash is not given
            payload_hash: Hex SHA-256 of the body, or UNSIGNED-PAYLOAD
            mode: SigningMode.HEADER or SigningMode.QUERY
            timestamp: Signing time (defaults to now, UTC)
            expires: Validity of a query-signed URL in seconds

        Returns:
            SignedRequest with the final URL and headers to send
        """
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        elif timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone(timezone.utc)
        amz_date = timestamp.strftime(AMZ_DATE_FORMAT)
        date_stamp = timestamp.strftime(DATE_STAMP_FORMAT)
        scope = credential_scope(date_stamp, self.region, self.service)

        if payload_hash is None:
            if body is not None:
                payload_hash = hashlib.sha256(body).hexdigest()
            elif mode is SigningMode.QUERY:
                payload_hash = UNSIGNED_PAYLOAD
            else:
                payload_hash = EMPTY_SHA256_HEX

        parts = urllib.parse.urlsplit(url)
        query_params = urllib.parse.parse_qsl(parts.query, keep_blank_values=True)
        request_headers = _drop_headers(
            dict(headers or {}),
            {"authorization", "x-amz-date", "x-amz-content-sha256", "x-amz-security-token", "host"},
        )
        request_headers["host"] = parts.netloc.lower()

        if mode is SigningMode.HEADER:
            return self._sign_headers(
                method, url, parts.path, query_params, request_headers,
                payload_hash, amz_date, scope, date_stamp,
            )
        return self._sign_query(
            method, parts, query_params, request_headers,
            payload_hash, amz_date, scope, date_stamp, expires,
        )

    def presign_url(
        self,
        method: str,
        url: str,
        expires: int = DEFAULT_PRESIGN_EXPIRES_SECONDS,
        timestamp: Optional[datetime] = None,
    ) -> str:
        """Return a query-signed URL usable without further headers."""
        return self.sign(method, url, mode=SigningMode.QUERY, timestamp=timestamp, expires=expires).url

    def _signature(self, date_stamp: str, string_to_sign: str) -> str:
        key = derive_signing_key(self.credentials.secret_key, date_stamp, self.region, self.service)
        return hmac.new(key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    def _sign_headers(
        self,
        method: str,
        url: str,
        path: str,
        query_params: List[Tuple[str, str]],
        headers: Dict[str, str],
        payload_hash: str,
        amz_date: str,
        scope: str,
        date_stamp: str,
    ) -> SignedRequest:
        headers["X-Amz-Date"] = amz_date
        headers["X-Amz-Content-Sha256"] = payload_hash
        if self.credentials.session_token:
            headers["X-Amz-Security-Token"] = self.credentials.session_token

        canonical_request, signed_headers = build_canonical_request(
            method, path, query_params, headers, payload_hash
        )
        string_to_sign = build_string_to_sign(amz_date, scope, canonical_request)
        signature = self._signature(date_stamp, string_to_sign)

        headers["Authorization"] = (
            f"{SIGNING_ALGORITHM} "
            f"Credential={self.credentials.access_key}/{scope}, "
            f"SignedHeaders={signed_headers}, "
            f"Signature={signature}"
        )
        logger.debug(f"Signed {method.upper()} {url} [signed_headers={signed_headers}]")

        return SignedRequest(
            method=method.upper(),
            url=url,
            headers=headers,
            body_hash_hex=payload_hash,
            canonical_request=canonical_request,
            string_to_sign=string_to_sign,
        )

    def _sign_query(
        self,
        method: str,
        parts: urllib.parse.SplitResult,
        query_params: List[Tuple[str, str]],
        headers: Dict[str, str],
        payload_hash: str,
        amz_date: str,
        scope: str,
        date_stamp: str,
        expires: int,
    ) -> SignedRequest:
        if not 1 <= expires <= MAX_PRESIGN_EXPIRES_SECONDS:
            raise ValueError(
                f"Presigned URL expiry must be between 1 and {MAX_PRESIGN_EXPIRES_SECONDS} seconds"
            )

        _, signed_headers = canonical_headers(headers)
        params = [(k, v) for k, v in query_params if k != "X-Amz-Signature"]
        params += [
            ("X-Amz-Algorithm", SIGNING_ALGORITHM),
            ("X-Amz-Credential", f"{self.credentials.access_key}/{scope}"),
            ("X-Amz-Date", amz_date),
            ("X-Amz-Expires", str(expires)),
            ("X-Amz-SignedHeaders", signed_headers),
        ]
        if self.credentials.session_token:
            params.append(("X-Amz-Security-Token", self.credentials.session_token))

        canonical_request, _ = build_canonical_request(
            method, parts.path, params, headers, payload_hash
        )
        string_to_sign = build_string_to_sign(amz_date, scope, canonical_request)
        signature = self._signature(date_stamp, string_to_sign)

        query = canonical_query_string(params) + f"&X-Amz-Signature={signature}"
        signed_url = urllib.parse.urlunsplit(
            (parts.scheme, parts.netloc, canonical_uri(parts.path), query, "")
        )
        logger.debug(f"Presigned {method.upper()} {signed_url}")

        return SignedRequest(
            method=method.upper(),
            url=signed_url,
            headers=headers,
            body_hash_hex=payload_hash,
            canonical_request=canonical_request,
            string_to_sign=string_to_sign,
        )
