"""
In-process proving API with scripted proof outcomes.
"""

import base64
import itertools
from typing import Any

import orjson
import zstandard
from aiohttp import web
from aiohttp.test_utils import TestServer

API_KEY = "test-api-key"


def urlsafe_unpadded(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


class FakeProvingService:
    def __init__(self, api_key: str = API_KEY) -> None:
        self.api_key = api_key

        # proof_input -> ("Ready", proof) or ("Failed", error)
        self.outcomes: dict[str, tuple[str, Any]] = {}
        self.default_outcome: tuple[str, Any] = ("Ready", "0xABCD")
        self.polls_before_finished = 1

        self.verification_keys: dict[str, bytes] = {
            "chunk_prover": b"chunk-verification-key",
            "batch_prover": b"batch-verification-key",
            "bundle_prover": b"bundle-verification-key",
        }

        self.prove_requests: list[dict[str, Any]] = []
        self.prove_paths: list[str] = []
        self.detail_polls = 0
        self.prove_failures: list[int] = []
        self.detail_failures: list[int] = []
        self.raw_bodies: list[bytes] = []

        self._ids = itertools.count(1)
        self._proofs: dict[str, dict[str, Any]] = {}
        self.base_url = ""
        self._server: TestServer | None = None

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/v1/circuit/scroll-tech/{circuit}/detail", self._circuit_detail)
        app.router.add_post("/api/v1/circuit/scroll-tech/{circuit}/prove", self._prove)
        app.router.add_get("/api/v1/proof/{proof_id}/detail", self._proof_detail)
        return app

    async def start(self) -> str:
        self._server = TestServer(self.app())
        await self._server.start_server()
        self.base_url = str(self._server.make_url(""))
        return self.base_url

    async def close(self) -> None:
        if self._server is not None:
            await self._server.close()

    def _authorized(self, request: web.Request) -> bool:
        return request.headers.get("Authorization") == f"Bearer {self.api_key}"

    async def _circuit_detail(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.json_response({"error": "unauthorized"}, status=401)

        circuit_name = request.match_info["circuit"].split(":")[0]
        return web.json_response(
            {
                "circuit_id": request.match_info["circuit"],
                "verification_key": {
                    "verification_key": urlsafe_unpadded(self.verification_keys[circuit_name]),
                },
            }
        )

    async def _prove(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.json_response({"error": "unauthorized"}, status=401)

        if self.prove_failures:
            return web.Response(status=self.prove_failures.pop(0), text="unavailable")

        body = await request.read()
        self.raw_bodies.append(body)
        if body.startswith(b"\x28\xb5\x2f\xfd"):
            body = zstandard.ZstdDecompressor().decompress(body)

        prove_request = orjson.loads(body)
        self.prove_requests.append(prove_request)
        self.prove_paths.append(request.path)

        proof_id = f"proof-{next(self._ids)}"
        status, value = self.outcomes.get(prove_request["proof_input"], self.default_outcome)
        self._proofs[proof_id] = {
            "status": status,
            "value": value,
            "remaining_polls": self.polls_before_finished,
        }

        return web.json_response(
            {
                "proof_id": proof_id,
                "status": "Queued",
                "date_created": "2024-01-01T00:00:00Z",
            },
            status=201,
        )

    async def _proof_detail(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.json_response({"error": "unauthorized"}, status=401)

        if self.detail_failures:
            return web.Response(status=self.detail_failures.pop(0), text="unavailable")

        self.detail_polls += 1

        proof_id = request.match_info["proof_id"]
        proof = self._proofs.get(proof_id)
        if proof is None:
            return web.json_response({"error": "not found"}, status=404)

        response: dict[str, Any] = {
            "proof_id": proof_id,
            "date_created": "2024-01-01T00:00:00Z",
        }

        if proof["remaining_polls"] > 0:
            proof["remaining_polls"] -= 1
            response["status"] = "In Progress"

        elif proof["status"] == "Ready":
            response.update(
                status="Ready",
                proof=proof["value"],
                compute_time_sec=1.5,
                queue_time_sec=0.5,
            )

        else:
            response.update(status="Failed", error=proof["value"])

        return web.json_response(response)
