import base64
import binascii
import os

import msgspec

from proving_relay.config import CircuitType


class KeyFile(msgspec.Struct, kw_only=True):
    circuit_type: int
    circuit_version: str
    key: str

    def payload(self) -> bytes:
        try:
            return base64.b64decode(self.key, validate=True)

        except (binascii.Error, ValueError) as err:
            raise ValueError(f"key is not valid base64: {err}") from err


def key_file_path(keys_dir: str, circuit: CircuitType, circuit_version: str) -> str:
    return os.path.join(keys_dir, circuit_version, f"{circuit.circuit_name}.json")


def read_key_file(path: str) -> KeyFile:
    with open(path, "rb") as key_file:
        return msgspec.json.decode(key_file.read(), type=KeyFile)


def write_key_file(
    keys_dir: str,
    circuit: CircuitType,
    circuit_version: str,
    key: str,
) -> str | None:
    """
    Write a key file unless one already exists.

    Returns the written path, or None when an existing file was left untouched.
    """
    path = key_file_path(keys_dir, circuit, circuit_version)
    os.makedirs(os.path.dirname(path), exist_ok=True)

    document = msgspec.json.encode(
        KeyFile(
            circuit_type=int(circuit),
            circuit_version=circuit_version,
            key=key,
        )
    )

    try:
        with open(path, "xb") as key_file:
            key_file.write(document)

    except FileExistsError:
        return None

    return path
