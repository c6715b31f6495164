import orjson
import pytest
import zstandard

from proving_relay.clients.http_session import (
    ZSTD_MAGIC,
    HttpSession,
    classify_status,
    decode_body,
    encode_body,
)
from proving_relay.errors import (
    AuthenticationError,
    MalformedResponseError,
    PermanentRejectionError,
    TransientNetworkError,
)


class TestClassifyStatus:
    """Test mapping of HTTP statuses onto the error taxonomy."""

    @pytest.mark.parametrize("status", [200, 201, 204])
    def test_success_statuses(self, status):
        """2xx responses are not errors."""
        assert classify_status(status, b"") is None

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_statuses(self, status):
        """401 and 403 are authentication failures."""
        error = classify_status(status, b"denied")

        assert isinstance(error, AuthenticationError)
        assert error.status == status

    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
    def test_transient_statuses(self, status):
        """Timeouts, throttling and 5xx are transient."""
        assert isinstance(classify_status(status, b""), TransientNetworkError)

    @pytest.mark.parametrize("status", [400, 404, 409, 422])
    def test_permanent_statuses(self, status):
        """Other 4xx responses are permanent rejections."""
        error = classify_status(status, b"bad request")

        assert isinstance(error, PermanentRejectionError)
        assert not isinstance(error, AuthenticationError)
        assert "bad request" in str(error)

    def test_custom_ok_statuses(self):
        """A status outside the accepted range is rejected even when 2xx."""
        assert classify_status(204, b"", ok_statuses=range(200, 203)) is not None


class TestBodyCodec:
    """Test request and response body encoding."""

    def test_uncompressed_body(self):
        """Plain JSON bodies carry only a content type."""
        data, headers = encode_body({"task_types": [1]})

        assert orjson.loads(data) == {"task_types": [1]}
        assert headers == {"Content-Type": "application/json"}

    def test_compressed_body(self):
        """Compressed bodies are zstd frames with a Content-Encoding header."""
        data, headers = encode_body({"proof_input": "x" * 1024}, compress=True)

        assert headers["Content-Encoding"] == "zstd"
        assert orjson.loads(zstandard.ZstdDecompressor().decompress(data)) == {
            "proof_input": "x" * 1024
        }

    def test_decode_zstd_response(self):
        """Responses starting with the zstd magic are decompressed."""
        body = zstandard.ZstdCompressor().compress(b'{"status": "Ready"}')

        assert decode_body(body) == {"status": "Ready"}

    def test_decode_streamed_zstd_response(self):
        """Frames written without a content size are decompressed."""
        compressor = zstandard.ZstdCompressor().compressobj()
        body = compressor.compress(b'{"status": "Success", "proof": "0xABCD"}') + compressor.flush()

        assert decode_body(body) == {"status": "Success", "proof": "0xABCD"}

    def test_decode_corrupt_zstd_response(self):
        """A body with the zstd magic but a broken frame is a malformed response."""
        with pytest.raises(MalformedResponseError):
            decode_body(ZSTD_MAGIC + b"garbage")

    def test_decode_invalid_json(self):
        """A body that is not JSON is a malformed response."""
        with pytest.raises(MalformedResponseError):
            decode_body(b"<html>")


class TestHttpSession:
    """Test URL handling of HttpSession."""

    def test_url_joins_paths(self):
        """Paths are joined to the base URL with a single slash."""
        session = HttpSession("http://proving.test/api/v1/")

        assert session.base_url == "http://proving.test/api/v1"
        assert session.url("/proof/1/detail") == "http://proving.test/api/v1/proof/1/detail"
        assert session.url("proof/1/detail") == "http://proving.test/api/v1/proof/1/detail"

    @pytest.mark.asyncio
    async def test_close_without_session(self):
        """Closing a session that never sent a request is a no-op."""
        session = HttpSession("http://proving.test")

        await session.close()
