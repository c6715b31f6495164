"""
Coordinator wire messages.

Every coordinator response is wrapped in an envelope carrying an errcode
(0 on success), an errmsg and the payload under ``data``.
"""

from typing import Any

import msgspec


ERR_EMPTY_TASK = 50004
ERR_TOKEN_EXPIRED = 50011


class CoordinatorResponse(msgspec.Struct, kw_only=True):
    errcode: int = 0
    errmsg: str = ""
    data: Any = None


class TokenData(msgspec.Struct, kw_only=True):
    token: str


class LoginMessage(msgspec.Struct, kw_only=True):
    challenge: str
    prover_name: str
    prover_version: str
    prover_types: list[int]
    vks: list[str]


class LoginRequest(msgspec.Struct, kw_only=True):
    message: LoginMessage


class GetTaskRequest(msgspec.Struct, kw_only=True):
    task_types: list[int]
    prover_height: int = 0


class TaskData(msgspec.Struct, kw_only=True):
    uuid: str = ""
    task_id: str
    task_type: int
    task_data: str
    hard_fork_name: str = ""
    circuit_version: str = ""


class SubmitProofRequest(msgspec.Struct, kw_only=True):
    uuid: str
    task_id: str
    task_type: int
    status: int
    proof: str = ""
    failure_type: int = 0
    failure_msg: str = ""


PROOF_STATUS_OK = 0
PROOF_STATUS_FAILED = 1
