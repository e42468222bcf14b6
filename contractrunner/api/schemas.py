"""
Pydantic schemas for the JSON-RPC requests and responses

This module defines the argument objects accepted by the contract methods and
the result objects they return. Field aliases follow the camelCase names used on
the wire; Python code uses the snake_case names.
"""

from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, ConfigDict, field_validator

from contractrunner.core.utils import from_hex, normalize_address

# Largest DNA amount accepted on the wire
MAX_AMOUNT = Decimal("1e60")


def _address(value):
    if value is None or value == "":
        return None
    return normalize_address(value)


def _hex_bytes(value):
    if value is None:
        return b""
    if isinstance(value, bytes):
        return value
    return from_hex(value)


class DynamicArg(BaseModel):
    """Typed positional contract argument"""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {"index": 0, "format": "uint64", "value": "1700000000"}
        }
    )

    index: int = Field(..., ge=0, description="Position in the argument vector")
    format: str = Field(..., description="Value format (byte, int8, uint64, int64, string, bigint, hex, dna)")
    value: str = Field(..., description="Value in its string form")


class DeployArgs(BaseModel):
    """Arguments of contract_deploy and contract_estimateDeploy"""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "from": "0x0000000000000000000000000000000000000000",
                "codeHash": "0x0100000000000000000000000000000000000000000000000000000000000000",
                "amount": "100",
                "maxFee": "1",
                "args": [{"index": 0, "format": "uint64", "value": "1600000100"}]
            }
        }
    )

    from_: str | None = Field(None, alias="from", description="Sender, defaults to the god address")
    code_hash: bytes = Field(b"", alias="codeHash", description="Hash of a known contract code")
    code: bytes = Field(b"", description="Contract code, overrides codeHash when set")
    amount: Decimal = Field(Decimal(0), ge=0, le=MAX_AMOUNT, description="Stake in DNA")
    max_fee: Decimal = Field(Decimal(0), alias="maxFee", ge=0, le=MAX_AMOUNT, description="Fee ceiling in DNA")
    args: list[DynamicArg] = Field(default_factory=list)

    @field_validator("from_", mode="before")
    @classmethod
    def check_sender(cls, value):
        return _address(value)

    @field_validator("code_hash", "code", mode="before")
    @classmethod
    def check_bytes(cls, value):
        return _hex_bytes(value)


class CallArgs(BaseModel):
    """Arguments of contract_call and contract_estimateCall"""
    model_config = ConfigDict(populate_by_name=True)

    from_: str | None = Field(None, alias="from")
    contract: str = Field(..., description="Contract address")
    method: str = Field(..., description="Contract method")
    amount: Decimal = Field(Decimal(0), ge=0, le=MAX_AMOUNT, description="Amount sent to the contract in DNA")
    max_fee: Decimal = Field(Decimal(0), alias="maxFee", ge=0, le=MAX_AMOUNT)
    args: list[DynamicArg] = Field(default_factory=list)
    broadcast_block: int = Field(0, alias="broadcastBlock", ge=0)

    @field_validator("from_", mode="before")
    @classmethod
    def check_sender(cls, value):
        return _address(value)

    @field_validator("contract", mode="before")
    @classmethod
    def check_contract(cls, value):
        return normalize_address(value)


class TerminateArgs(BaseModel):
    """Arguments of contract_terminate and contract_estimateTerminate"""
    model_config = ConfigDict(populate_by_name=True)

    from_: str | None = Field(None, alias="from")
    contract: str = Field(..., description="Contract address")
    max_fee: Decimal = Field(Decimal(0), alias="maxFee", ge=0, le=MAX_AMOUNT)
    args: list[DynamicArg] = Field(default_factory=list)

    @field_validator("from_", mode="before")
    @classmethod
    def check_sender(cls, value):
        return _address(value)

    @field_validator("contract", mode="before")
    @classmethod
    def check_contract(cls, value):
        return normalize_address(value)


class ReadonlyCallArgs(BaseModel):
    """Arguments of contract_readonlyCall"""
    contract: str
    method: str
    format: str = "hex"
    args: list[DynamicArg] = Field(default_factory=list)

    @field_validator("contract", mode="before")
    @classmethod
    def check_contract(cls, value):
        return normalize_address(value)


class EventsArgs(BaseModel):
    """Arguments of contract_events"""
    contract: str

    @field_validator("contract", mode="before")
    @classmethod
    def check_contract(cls, value):
        return normalize_address(value)


class TxReceipt(BaseModel):
    """Receipt of an executed or estimated transaction"""
    model_config = ConfigDict(populate_by_name=True)

    contract: str | None = None
    method: str = ""
    success: bool
    gas_used: int = Field(..., alias="gasUsed")
    tx_hash: str | None = Field(None, alias="txHash")
    error: str = ""
    gas_cost: str = Field(..., alias="gasCost", description="Gas cost in DNA")
    tx_fee: str = Field(..., alias="txFee", description="Size based fee in DNA")


class Event(BaseModel):
    contract: str
    event: str
    args: list[str] = Field(default_factory=list)


class MapItem(BaseModel):
    key: Any
    value: Any


class IterateMapResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[MapItem] = Field(default_factory=list)
    continuation_token: str | None = Field(None, alias="continuationToken")


class StakeResponse(BaseModel):
    hash: str | None = None
    stake: str


# Positional RPC parameter holding an address
Address = Annotated[str, BeforeValidator(normalize_address)]
