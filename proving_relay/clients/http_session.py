"""
Shared HTTP plumbing for the coordinator and proving service clients.

One HttpSession wraps one lazily created aiohttp.ClientSession, so every
slot reuses the same connection pool. Response statuses are mapped onto the
relay error taxonomy here, leaving retry decisions to the RetryPolicy.
"""

from typing import Any, Container, Dict, Mapping

import aiohttp
import orjson
import zstandard

from proving_relay.errors import (
    AuthenticationError,
    MalformedResponseError,
    PermanentRejectionError,
    TransientNetworkError,
)

ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"

TRANSIENT_STATUSES = frozenset({408, 429})
AUTH_STATUSES = frozenset({401, 403})


def classify_status(
    status: int,
    body: bytes,
    ok_statuses: Container[int] = range(200, 300),
) -> Exception | None:
    if status in ok_statuses:
        return None

    detail = body[:512].decode(errors="replace")

    if status in AUTH_STATUSES:
        return AuthenticationError(f"HTTP {status}: {detail}", status=status)

    if status in TRANSIENT_STATUSES or status >= 500:
        return TransientNetworkError(f"HTTP {status}: {detail}", status=status)

    return PermanentRejectionError(f"HTTP {status}: {detail}", status=status)


def encode_body(payload: Any, compress: bool = False) -> tuple[bytes, Dict[str, str]]:
    data = orjson.dumps(payload)
    headers = {"Content-Type": "application/json"}

    if compress:
        data = zstandard.ZstdCompressor().compress(data)
        headers["Content-Encoding"] = "zstd"

    return data, headers


def decode_body(body: bytes) -> Any:
    if body.startswith(ZSTD_MAGIC):
        try:
            body = zstandard.ZstdDecompressor().decompressobj().decompress(body)

        except zstandard.ZstdError as err:
            raise MalformedResponseError(f"Response is not a valid zstd frame: {err}") from err

    try:
        return orjson.loads(body)

    except orjson.JSONDecodeError as err:
        raise MalformedResponseError(f"Response is not valid JSON: {err}") from err


class HttpSession:
    def __init__(
        self,
        base_url: str,
        connection_timeout: float = 60.0,
        compress_requests: bool = False,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._connection_timeout = connection_timeout
        self._compress_requests = compress_requests
        self._session: aiohttp.ClientSession | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._connection_timeout),
            )

        return self._session

    async def request(
        self,
        method: str,
        path: str,
        payload: Any = None,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> tuple[int, bytes]:
        session = self._ensure_session()

        request_headers: Dict[str, str] = dict(headers or {})
        data: bytes | None = None

        if payload is not None:
            data, body_headers = encode_body(payload, compress=self._compress_requests)
            request_headers.update(body_headers)

        async with session.request(
            method,
            self.url(path),
            data=data,
            headers=request_headers,
            params=params,
        ) as response:
            return response.status, await response.read()

    async def request_json(
        self,
        method: str,
        path: str,
        payload: Any = None,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        ok_statuses: Container[int] = range(200, 300),
    ) -> Any:
        status, body = await self.request(
            method,
            path,
            payload=payload,
            headers=headers,
            params=params,
        )

        if error := classify_status(status, body, ok_statuses=ok_statuses):
            raise error

        return decode_body(body)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

        self._session = None
