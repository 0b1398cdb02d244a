"""HTTP client for signed requests against an S3-compatible endpoint."""

from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Union

import httpx

from common.constants import DEFAULT_REGION
from common.exceptions import MalformedResponseError, TransportError
from common.logging_config import get_logger
from common.types import PartResult
from uploader.config import UploadConfig
from uploader.responses import parse_aws_response
from uploader.schemas import (
    CompleteMultipartUploadResult,
    InitiateMultipartUploadResult,
    build_complete_multipart_body,
)
from uploader.signer import RequestSigner, SigningMode, uri_encode

logger = get_logger(__name__)

Body = Union[bytes, AsyncIterator[bytes], None]


def encode_query(params: List[Tuple[str, str]]) -> str:
    """Encode query parameters; empty values render as a bare name ('?uploads')."""
    return "&".join(
        f"{uri_encode(k)}={uri_encode(v)}" if v else uri_encode(k)
        for k, v in params
    )


class S3Client:
    """Signs and sends requests to the object store, one shared httpx.AsyncClient per instance."""

    def __init__(
        self,
        config: UploadConfig,
        session: Optional[httpx.AsyncClient] = None,
        signer: Optional[RequestSigner] = None,
    ):
        """
        Initialize the client.

        Args:
            config: Upload configuration (credentials, region, endpoint, timeout)
            session: Optional pre-built httpx.AsyncClient (tests inject a MockTransport here)
            signer: Optional RequestSigner; built from config when omitted
        """
        self.config = config
        self.signer = signer or RequestSigner(config.credentials, config.region)
        self._owns_session = session is None
        self.session = session or httpx.AsyncClient(timeout=config.request_timeout_seconds)
        logger.info(f"Initialized S3Client [endpoint={self.bucket_url(config.bucket)}]")

    async def close(self) -> None:
        """Close the underlying HTTP session if this client created it."""
        if self._owns_session:
            await self.session.aclose()

    async def __aenter__(self) -> "S3Client":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _endpoint_host(self) -> Tuple[str, str]:
        if self.config.endpoint_url:
            parsed = httpx.URL(self.config.endpoint_url)
            netloc = parsed.host if parsed.port is None else f"{parsed.host}:{parsed.port}"
            return parsed.scheme, netloc
        if self.config.region == DEFAULT_REGION:
            return "https", "s3.amazonaws.com"
        return "https", f"s3.{self.config.region}.amazonaws.com"

    def bucket_url(self, bucket: str) -> str:
        """
        Base URL of a bucket.

        Returns:
            'https://{bucket}.{host}' for virtual-hosted addressing,
            '{scheme}://{host}/{bucket}' for path addressing
        """
        scheme, host = self._endpoint_host()
        if self.config.addressing_style == "path":
            return f"{scheme}://{host}/{uri_encode(bucket)}"
        return f"{scheme}://{bucket}.{host}"

    def object_url(
        self,
        key: str,
        query: Optional[List[Tuple[str, str]]] = None,
        bucket: Optional[str] = None,
    ) -> str:
        url = f"{self.bucket_url(bucket or self.config.bucket)}/{uri_encode(key, encode_slash=False)}"
        if query:
            url += "?" + encode_query(query)
        return url

    async def send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        content: Body = None,
        payload_hash: Optional[str] = None,
    ) -> httpx.Response:
        """
        Sign and send one request. A fresh signature is produced on every call.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Extra headers to sign and send
            content: bytes, an async byte stream (requires payload_hash) or None
            payload_hash: Hex SHA-256 of the body, computed from bytes content when omitted

        Returns:
            HTTP response object

        Raises:
            TransportError: On connection, DNS, TLS or timeout failures
        """
        signed = self.signer.sign(
            method,
            url,
            headers=headers,
            body=content if isinstance(content, bytes) else None,
            payload_hash=payload_hash,
            mode=SigningMode.HEADER,
        )

        logger.debug(f"Making request: {signed.method} {signed.url} [authorization={signed.headers['Authorization']}]")
        try:
            response = await self.session.request(
                signed.method,
                signed.url,
                headers=signed.headers,
                content=content,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Request timed out: {signed.method} {signed.url}")
            raise TransportError(
                f"{signed.method} {signed.url} timed out: {type(e).__name__}",
                method=signed.method,
                url=signed.url,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Network error: {signed.method} {signed.url} error={e}")
            raise TransportError(
                f"{signed.method} {signed.url} failed: {e}",
                method=signed.method,
                url=signed.url,
            ) from e

        logger.debug(
            f"Response received: {signed.method} {signed.url} status={response.status_code} "
            f"[request_id={response.headers.get('x-amz-request-id')}]"
        )
        return response

    async def request_xml(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        content: Optional[bytes] = None,
    ) -> Dict[str, Any]:
        """
        Send a control request and interpret its XML body.

        Returns:
            Parsed payload (empty dict for an empty 2xx body)

        Raises:
            AwsProtocolError: Error document in the body
            MalformedResponseError: Non-2xx with an empty or non-error body
            TransportError: Transport failure
        """
        response = await self.send(method, url, headers=headers, content=content)
        return interpret_response(response, f"{method} {url}")

    async def initiate_multipart_upload(self, key: Optional[str] = None) -> str:
        """
        Start a multipart upload.

        Returns:
            Upload ID issued by the service
        """
        key = key or self.config.key
        payload = await self.request_xml("POST", self.object_url(key, [("uploads", "")]))
        result = InitiateMultipartUploadResult.from_payload(payload)
        logger.info(f"Initiated multipart upload for {self.config.bucket}/{key} [upload_id={result.upload_id}]")
        return result.upload_id

    async def complete_multipart_upload(
        self,
        upload_id: str,
        parts: List[PartResult],
        key: Optional[str] = None,
    ) -> CompleteMultipartUploadResult:
        """
        Commit the uploaded parts as one object. Parts are listed ascending by part number.
        """
        key = key or self.config.key
        body = build_complete_multipart_body(parts)
        payload = await self.request_xml(
            "POST",
            self.object_url(key, [("uploadId", upload_id)]),
            headers={"Content-Type": "application/xml"},
            content=body,
        )
        result = CompleteMultipartUploadResult.from_payload(payload)
        logger.info(
            f"Completed multipart upload for {self.config.bucket}/{key} with {len(parts)} parts "
            f"[upload_id={upload_id}, etag={result.etag}]"
        )
        return result

    async def abort_multipart_upload(self, upload_id: str, key: Optional[str] = None) -> None:
        """Discard an upload session and every part uploaded to it."""
        key = key or self.config.key
        await self.request_xml("DELETE", self.object_url(key, [("uploadId", upload_id)]))
        logger.info(f"Aborted multipart upload for {self.config.bucket}/{key} [upload_id={upload_id}]")


def interpret_response(response: httpx.Response, description: str) -> Dict[str, Any]:
    """
    Map a response to a payload or a typed error.

    Args:
        response: Received response
        description: "METHOD URL" for error messages
    """
    body = response.content
    if not response.is_success and not body.strip():
        raise MalformedResponseError(
            f"{description} failed with HTTP {response.status_code} and an empty body",
            status_code=response.status_code,
        )

    payload = parse_aws_response(body, response.status_code)
    if not response.is_success:
        raise MalformedResponseError(
            f"{description} failed with HTTP {response.status_code} without an Error document",
            status_code=response.status_code,
        )
    return payload
