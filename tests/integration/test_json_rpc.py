"""
Integration tests for the JSON-RPC endpoint

This module drives the runner through its HTTP surface: deploying, calling and
terminating the built-in contracts, producing blocks, reading state back and the
error objects returned for malformed or failing requests.
"""

import pytest
from fastapi.testclient import TestClient

from contractrunner.api.server import create_app
from contractrunner.config.settings import TestingSettings
from contractrunner.core.blockchain import MemBlockchain
from contractrunner.core.utils import to_hex
from contractrunner.security.security_utils import KeyPair
from contractrunner.vm.embedded import KEY_VALUE_STORE_CODE_HASH, TIME_LOCK_CODE_HASH


@pytest.fixture
def app():
    return create_app(MemBlockchain(KeyPair.generate(), TestingSettings), TestingSettings)


@pytest.fixture
def client(app):
    """Create a test client for the API"""
    return TestClient(app)


class Rpc:
    def __init__(self, client):
        self.client = client
        self.next_id = 0

    def request(self, method, *params):
        self.next_id += 1
        response = self.client.post("/", json={
            "jsonrpc": "2.0", "id": self.next_id, "method": method, "params": list(params)
        })
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == self.next_id
        return body

    def __call__(self, method, *params):
        body = self.request(method, *params)
        assert "error" not in body, body["error"]
        return body["result"]

    def error(self, method, *params):
        body = self.request(method, *params)
        assert "result" not in body
        return body["error"]

    def mine(self, tx_hash):
        self("chain_generateBlocks", 1)
        return self("chain_getReceipt", tx_hash)


@pytest.fixture
def rpc(client):
    return Rpc(client)


def _arg(index, format_name, value):
    return {"index": index, "format": format_name, "value": str(value)}


def test_health_check(client):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["height"] == 0


def test_chain_inspection(rpc):
    head = rpc("chain_head")
    assert head["height"] == 0
    assert head["timestamp"] == TestingSettings.GENESIS_TIMESTAMP

    assert rpc("chain_generateBlocks", 2) is None
    assert rpc("chain_head")["height"] == 2
    block = rpc("chain_getBlock", 1)
    assert block["parentHash"] == head["hash"]
    assert rpc("chain_getBlock", 2)["parentHash"] == block["hash"]

    assert rpc.error("chain_getBlock", 3)["code"] == -32000


def test_key_value_store_flow(rpc):
    """Test deploy, call and the reading methods of the key/value store"""
    receipt = rpc.mine(rpc("contract_deploy", {"codeHash": to_hex(KEY_VALUE_STORE_CODE_HASH), "maxFee": "1"}))
    assert receipt["success"] is True
    assert receipt["method"] == "deploy"
    contract = receipt["contract"]

    for key, value in (("b", "2"), ("a", "1"), ("c", "3")):
        rpc("contract_call", {
            "contract": contract, "method": "set", "maxFee": "1",
            "args": [_arg(0, "string", key), _arg(1, "string", value)]
        })
    rpc("chain_generateBlocks", 1)

    assert rpc("contract_readData", contract, "count", "uint64") == 3
    assert rpc("contract_readMap", contract, "kv", to_hex(b"a"), "string") == "1"
    assert rpc("contract_readonlyCall", {
        "contract": contract, "method": "get", "format": "string", "args": [_arg(0, "string", "c")]
    }) == "3"

    page = rpc("contract_iterateMap", contract, "kv", None, "string", "string", 2)
    assert page["items"] == [{"key": "a", "value": "1"}, {"key": "b", "value": "2"}]
    page = rpc("contract_iterateMap", contract, "kv", page["continuationToken"], "string", "string", 2)
    assert page["items"] == [{"key": "c", "value": "3"}]
    assert page["continuationToken"] is None

    events = rpc("contract_events", {"contract": contract})
    assert [e["event"] for e in events] == ["set", "set", "set"]
    assert events[1]["args"] == [to_hex(b"a"), to_hex(b"1")]


def test_estimate_call(rpc):
    """Test that estimation reports costs and leaves the chain untouched"""
    contract = rpc.mine(rpc("contract_deploy", {
        "codeHash": to_hex(KEY_VALUE_STORE_CODE_HASH), "maxFee": "1"
    }))["contract"]
    head = rpc("chain_head")

    estimate = rpc("contract_estimateCall", {
        "contract": contract, "method": "set", "maxFee": "1",
        "args": [_arg(0, "string", "k"), _arg(1, "string", "v")]
    })
    assert estimate["success"] is True
    assert estimate["gasUsed"] > 0
    assert estimate["txHash"].startswith("0x")
    assert float(estimate["txFee"]) > 0
    assert rpc("chain_head") == head
    assert rpc("contract_readData", contract, "count", "uint64") == 0


def test_time_lock_lifecycle(rpc):
    """Test a time lock from deployment to termination"""
    unlock_at = TestingSettings.GENESIS_TIMESTAMP + 3 * TestingSettings.BLOCK_TIME_STEP
    receipt = rpc.mine(rpc("contract_deploy", {
        "codeHash": to_hex(TIME_LOCK_CODE_HASH), "amount": "10", "maxFee": "1",
        "args": [_arg(0, "uint64", unlock_at)]
    }))
    contract = receipt["contract"]
    assert rpc("contract_getStake", contract) == {"hash": to_hex(TIME_LOCK_CODE_HASH), "stake": "10"}
    assert rpc("contract_readonlyCall", {"contract": contract, "method": "timestamp", "format": "uint64"}) == unlock_at

    dest = KeyPair.generate().address
    transfer = {
        "contract": contract, "method": "transfer", "amount": "5", "maxFee": "1",
        "args": [_arg(0, "hex", dest), _arg(1, "dna", "4")]
    }

    # block 2 is still before the unlock time
    receipt = rpc.mine(rpc("contract_call", transfer))
    assert receipt["success"] is False
    assert receipt["error"] == "transfer is locked"
    assert rpc("chain_getBalance", contract) == "0"

    receipt = rpc.mine(rpc("contract_call", transfer))
    assert receipt["success"] is True, receipt["error"]
    assert rpc("chain_getBalance", dest) == "4"
    assert rpc("chain_getBalance", contract) == "1"
    events = rpc("contract_events", {"contract": contract})
    assert [e["event"] for e in events] == ["transfer"]
    assert events[0]["args"][0] == dest

    receipt = rpc.mine(rpc("contract_terminate", {"contract": contract, "maxFee": "1", "args": [_arg(0, "hex", dest)]}))
    assert receipt["success"] is True, receipt["error"]
    assert receipt["method"] == "terminate"
    assert rpc("chain_getBalance", dest) == "14"
    assert rpc("contract_getStake", contract) == {"hash": None, "stake": "0"}


def test_reset_to(rpc):
    tx_hash = rpc("contract_deploy", {"codeHash": to_hex(KEY_VALUE_STORE_CODE_HASH), "maxFee": "1"})
    rpc("chain_generateBlocks", 3)
    rpc("chain_resetTo", 0)
    assert rpc("chain_head")["height"] == 0
    assert rpc.error("chain_getReceipt", tx_hash)["code"] == -32000
    assert rpc.error("chain_resetTo", 5)["code"] == -32000


def test_runner_errors(rpc):
    """Test failures of the services as JSON-RPC errors"""
    contract = rpc.mine(rpc("contract_deploy", {
        "codeHash": to_hex(KEY_VALUE_STORE_CODE_HASH), "maxFee": "1"
    }))["contract"]

    assert rpc.error("contract_readData", contract, "missing") == {"code": -32000, "message": "data is nil"}
    assert rpc.error("chain_generateBlocks", -1)["code"] == -32000
    error = rpc.error("contract_deploy", {
        "codeHash": to_hex(KEY_VALUE_STORE_CODE_HASH), "maxFee": "1", "args": [_arg(0, "uint64", "x")]
    })
    assert error == {"code": -32000, "message": 'cannot parse uint64: "x"'}
    error = rpc.error("contract_deploy", {
        "from": KeyPair.generate().address, "codeHash": to_hex(KEY_VALUE_STORE_CODE_HASH), "maxFee": "1"
    })
    assert error["code"] == -32000

    huge = "1" * 5000
    error = rpc.error("contract_deploy", {
        "codeHash": to_hex(KEY_VALUE_STORE_CODE_HASH), "maxFee": "1", "args": [_arg(0, "uint64", huge)]
    })
    assert error == {"code": -32000, "message": f'cannot parse uint64: "{huge}"'}


def test_invalid_params(rpc, client):
    assert rpc.error("chain_generateBlocks")["code"] == -32602
    assert rpc.error("chain_generateBlocks", "many")["code"] == -32602
    assert rpc.error("chain_generateBlocks", 1, 2)["code"] == -32602
    assert rpc.error("chain_getBalance", "0x1234")["code"] == -32602
    assert rpc.error("contract_deploy", {"codeHash": "not hex"})["code"] == -32602
    assert rpc.error("contract_deploy", {"codeHash": "0x", "maxFee": "1e999999999"})["code"] == -32602
    assert rpc.error("contract_deploy", {"codeHash": "0x", "amount": "-1"})["code"] == -32602

    body = client.post("/", json={"jsonrpc": "2.0", "id": 1, "method": "chain_head", "params": {"a": 1}}).json()
    assert body["error"] == {"code": -32602, "message": "non-array args"}


def test_protocol_errors(client):
    """Test malformed JSON-RPC envelopes"""
    body = client.post("/", content=b"{not json").json()
    assert body["error"]["code"] == -32700

    body = client.post("/", json={"jsonrpc": "2.0", "id": 7, "method": "debug_dump"}).json()
    assert body["id"] == 7
    assert body["error"] == {"code": -32601, "message": "the method debug_dump does not exist/is not available"}

    body = client.post("/", json={"jsonrpc": "2.0", "id": 8}).json()
    assert body["error"]["code"] == -32600
    assert client.post("/", json=[]).json()["error"]["code"] == -32600


def test_batch(client):
    body = client.post("/", json=[
        {"jsonrpc": "2.0", "id": 1, "method": "chain_generateBlocks", "params": [1]},
        {"jsonrpc": "2.0", "id": 2, "method": "chain_head"},
        5,
    ]).json()
    assert body[0] == {"jsonrpc": "2.0", "id": 1, "result": None}
    assert body[1]["result"]["height"] == 1
    assert body[2]["error"]["code"] == -32600


def test_disabled_module():
    class ChainOnly(TestingSettings):
        RPC_MODULES = ["chain"]

    client = TestClient(create_app(MemBlockchain(KeyPair.generate(), ChainOnly), ChainOnly))
    body = client.post("/", json={"jsonrpc": "2.0", "id": 1, "method": "contract_events", "params": []}).json()
    assert body["error"]["code"] == -32601
    body = client.post("/", json={"jsonrpc": "2.0", "id": 2, "method": "chain_head"}).json()
    assert body["result"]["height"] == 0


def test_chain_fault_is_server_error(app, client):
    """Test that a rejected self-produced block answers HTTP 500"""
    app.state.chain.consensus.authorities.clear()
    response = client.post("/", json={"jsonrpc": "2.0", "id": 1, "method": "chain_generateBlocks", "params": [1]})
    assert response.status_code == 500
    assert response.json()["error"] == "Chain fault"
