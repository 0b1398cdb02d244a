"""Unit tests for PartUploader."""

import base64
import hashlib

import httpx
import pytest

from common.exceptions import (
    AwsProtocolError,
    MalformedResponseError,
    PartVerificationError,
    TransportError,
)
from common.types import PartPlan
from uploader.chunker import chunk_file, read_range
from uploader.part_uploader import PartUploader, VerifyingStream


async def _pieces(*chunks):
    for chunk in chunks:
        yield chunk


@pytest.fixture
def part_plans(sample_file, upload_config):
    path, _ = sample_file
    digest = chunk_file(str(path), upload_config.chunk_size_bytes)
    return [PartPlan.from_chunk(chunk, 'upload-1') for chunk in digest.chunks]


class TestVerifyingStream:
    """Tests for the hashing body stream."""

    @pytest.mark.asyncio
    async def test_counts_and_hashes_pieces(self):
        stream = VerifyingStream(_pieces(b'abc', b'', b'def'))

        received = [piece async for piece in stream]

        assert b''.join(received) == b'abcdef'
        assert stream.bytes_sent == 6
        assert stream.sha256_hex == hashlib.sha256(b'abcdef').hexdigest()

    @pytest.mark.asyncio
    async def test_closes_source_when_reader_stops_early(self):
        closed = []

        async def source():
            try:
                yield b'first'
                yield b'second'
            finally:
                closed.append(True)

        iterator = VerifyingStream(source()).__aiter__()
        assert await iterator.__anext__() == b'first'
        await iterator.aclose()

        assert closed == [True]

    @pytest.mark.asyncio
    async def test_closes_file_range_reader(self, sample_file):
        path, data = sample_file
        source = read_range(str(path), 0, 1024, piece_size=256)

        iterator = VerifyingStream(source).__aiter__()
        assert await iterator.__anext__() == data[:256]
        await iterator.aclose()

        assert source.ag_frame is None


class TestUploadPart:
    """Tests for PartUploader.upload_part."""

    @pytest.mark.asyncio
    async def test_uploads_part_with_integrity_headers(self, make_client, sample_file, part_plans):
        path, data = sample_file
        seen = {}

        def handler(request):
            seen['request'] = request
            seen['body'] = request.content
            return httpx.Response(200, headers={'ETag': '"etag-2"'})

        client = make_client(handler)
        plan = part_plans[1]

        result = await PartUploader(client, str(path)).upload_part(plan)

        request = seen['request']
        expected_body = data[1024:2048]
        assert result.part_number == 2
        assert result.etag == '"etag-2"'
        assert seen['body'] == expected_body
        assert request.method == 'PUT'
        assert request.url.path == '/multi-part/test-file'
        assert request.url.params['partNumber'] == '2'
        assert request.url.params['uploadId'] == 'upload-1'
        assert request.headers['Content-Length'] == '1024'
        assert 'Transfer-Encoding' not in request.headers
        assert request.headers['Content-MD5'] == base64.b64encode(hashlib.md5(expected_body).digest()).decode()
        assert request.headers['X-Amz-Content-Sha256'] == hashlib.sha256(expected_body).hexdigest()
        assert request.headers['Authorization'].startswith('AWS4-HMAC-SHA256 Credential=')

    @pytest.mark.asyncio
    async def test_last_part_is_short(self, make_client, sample_file, part_plans):
        path, data = sample_file
        bodies = []

        def handler(request):
            bodies.append(request.content)
            return httpx.Response(200, headers={'ETag': '"last"'})

        result = await PartUploader(make_client(handler), str(path)).upload_part(part_plans[-1])

        assert result.part_number == 3
        assert bodies == [data[2048:]]

    @pytest.mark.asyncio
    async def test_altered_body_fails_verification(self, make_client, sample_file, part_plans):
        path, _ = sample_file
        plan = part_plans[0]

        client = make_client(lambda request: httpx.Response(200, headers={'ETag': '"x"'}))
        uploader = PartUploader(client, str(path))

        with pytest.raises(PartVerificationError) as exc_info:
            await uploader.upload_part(plan, body_source=_pieces(b'\0' * plan.size))

        assert exc_info.value.part_number == 1
        assert exc_info.value.expected == plan.sha256_hex

    @pytest.mark.asyncio
    async def test_short_body_fails_verification(self, make_client, sample_file, part_plans):
        path, data = sample_file
        plan = part_plans[0]

        client = make_client(lambda request: httpx.Response(200, headers={'ETag': '"x"'}))

        with pytest.raises(PartVerificationError):
            await PartUploader(client, str(path)).upload_part(plan, body_source=_pieces(data[:100]))

    @pytest.mark.asyncio
    async def test_error_document_raises_protocol_error(self, make_client, sample_file, part_plans):
        path, _ = sample_file

        def handler(request):
            return httpx.Response(
                400,
                content=b'<Error><Code>InvalidDigest</Code><Message>The Content-MD5 you specified was invalid.</Message></Error>',
            )

        with pytest.raises(AwsProtocolError) as exc_info:
            await PartUploader(make_client(handler), str(path)).upload_part(part_plans[0])

        assert exc_info.value.code == 'InvalidDigest'
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_empty_error_body_raises_malformed(self, make_client, sample_file, part_plans):
        path, _ = sample_file

        with pytest.raises(MalformedResponseError) as exc_info:
            await PartUploader(make_client(lambda request: httpx.Response(503)), str(path)).upload_part(part_plans[0])

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_missing_etag_raises_malformed(self, make_client, sample_file, part_plans):
        path, _ = sample_file

        with pytest.raises(MalformedResponseError):
            await PartUploader(make_client(lambda request: httpx.Response(200)), str(path)).upload_part(part_plans[0])

    @pytest.mark.asyncio
    async def test_connection_failure_raises_transport_error(self, make_client, sample_file, part_plans):
        path, _ = sample_file

        def handler(request):
            raise httpx.ConnectError('connection refused', request=request)

        with pytest.raises(TransportError) as exc_info:
            await PartUploader(make_client(handler), str(path)).upload_part(part_plans[0])

        assert exc_info.value.method == 'PUT'
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
