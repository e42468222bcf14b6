"""
Transaction attachments for contract operations.

An attachment is the payload of a contract transaction: which code to deploy,
which method to call, and the positional argument vector. Absent arguments are
kept as None so that "no argument" stays distinct from "empty argument".
"""

import json
from dataclasses import dataclass, field
from typing import Any

from contractrunner.core.utils import canonical_json, to_hex, from_hex


def _encode_args(args: list[bytes | None]) -> list[str | None]:
    return [to_hex(a) if a is not None else None for a in args]


def _decode_args(args: list[str | None]) -> list[bytes | None]:
    return [from_hex(a) if a is not None else None for a in args]


def _load(data: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(data)
    except ValueError as e:
        raise ValueError(f"Malformed attachment: {e}") from e
    if not isinstance(payload, dict):
        raise ValueError("Malformed attachment: expected an object")
    return payload


@dataclass
class DeployContractAttachment:
    code_hash: bytes
    code: bytes = b""
    args: list[bytes | None] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        return canonical_json({
            "codeHash": to_hex(self.code_hash),
            "code": to_hex(self.code),
            "args": _encode_args(self.args)
        })

    @classmethod
    def from_bytes(cls, data: bytes) -> 'DeployContractAttachment':
        payload = _load(data)
        return cls(
            code_hash=from_hex(payload.get("codeHash", "0x")),
            code=from_hex(payload.get("code", "0x")),
            args=_decode_args(payload.get("args", []))
        )


@dataclass
class CallContractAttachment:
    method: str
    args: list[bytes | None] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        return canonical_json({
            "method": self.method,
            "args": _encode_args(self.args)
        })

    @classmethod
    def from_bytes(cls, data: bytes) -> 'CallContractAttachment':
        payload = _load(data)
        return cls(method=payload.get("method", ""), args=_decode_args(payload.get("args", [])))


@dataclass
class TerminateContractAttachment:
    args: list[bytes | None] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        return canonical_json({"args": _encode_args(self.args)})

    @classmethod
    def from_bytes(cls, data: bytes) -> 'TerminateContractAttachment':
        return cls(args=_decode_args(_load(data).get("args", [])))
