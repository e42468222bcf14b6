"""
FastAPI server for ContractRunner

This module exposes the contract and chain services over a JSON-RPC 2.0 endpoint
(POST /) with positional parameters, plus a plain GET /health probe.

Client errors are reported as JSON-RPC error objects. A ChainFault is not a
client error: it is logged and answered with HTTP 500, and the runner is no
longer trustworthy after it.
"""

import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from contractrunner import __version__
from contractrunner.api.base_api import BaseApi
from contractrunner.api.chain_api import ChainApi
from contractrunner.api.contract_api import ContractApi
from contractrunner.api.schemas import (
    Address, DeployArgs, CallArgs, TerminateArgs, ReadonlyCallArgs, EventsArgs
)
from contractrunner.config.settings import Settings, settings as default_settings
from contractrunner.core.blockchain import MemBlockchain
from contractrunner.core.errors import ChainFault, RunnerError

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
RUNNER_ERROR = -32000

REQUIRED = ...


class RpcError(Exception):
    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


@dataclass
class RpcMethod:
    """A served method and the types of its positional parameters"""
    handler: Callable[..., Any]
    params: list[tuple[Any, Any]] = field(default_factory=list)
    adapters: list[TypeAdapter] = field(init=False)

    def __post_init__(self):
        self.adapters = [TypeAdapter(tp) for tp, _ in self.params]

    def bind(self, params: Any) -> list[Any]:
        if params is None:
            params = []
        if not isinstance(params, list):
            raise RpcError(INVALID_PARAMS, "non-array args")
        if len(params) > len(self.params):
            raise RpcError(INVALID_PARAMS, f"too many arguments, want at most {len(self.params)}")

        values = []
        for i, ((_, default), adapter) in enumerate(zip(self.params, self.adapters)):
            if i < len(params):
                try:
                    values.append(adapter.validate_python(params[i]))
                except PydanticValidationError as e:
                    raise RpcError(INVALID_PARAMS, f"invalid argument {i}: {e.errors()[0]['msg']}") from e
            elif default is REQUIRED:
                raise RpcError(INVALID_PARAMS, f"missing value for required argument {i}")
            else:
                values.append(default)
        return values


def build_methods(contract_api: ContractApi, chain_api: ChainApi, modules: list[str]) -> dict[str, RpcMethod]:
    """Map JSON-RPC method names of the enabled modules to their handlers."""
    methods = {
        "chain_generateBlocks": RpcMethod(chain_api.generate_blocks, [(int, REQUIRED)]),
        "chain_resetTo": RpcMethod(chain_api.reset_to, [(int, REQUIRED)]),
        "chain_head": RpcMethod(chain_api.head),
        "chain_getBlock": RpcMethod(chain_api.get_block, [(int, REQUIRED)]),
        "chain_getBalance": RpcMethod(chain_api.get_balance, [(Address, REQUIRED)]),
        "chain_getReceipt": RpcMethod(chain_api.get_receipt, [(str, REQUIRED)]),

        "contract_deploy": RpcMethod(contract_api.deploy, [(DeployArgs, REQUIRED)]),
        "contract_call": RpcMethod(contract_api.call, [(CallArgs, REQUIRED)]),
        "contract_terminate": RpcMethod(contract_api.terminate, [(TerminateArgs, REQUIRED)]),
        "contract_estimateDeploy": RpcMethod(contract_api.estimate_deploy, [(DeployArgs, REQUIRED)]),
        "contract_estimateCall": RpcMethod(contract_api.estimate_call, [(CallArgs, REQUIRED)]),
        "contract_estimateTerminate": RpcMethod(contract_api.estimate_terminate, [(TerminateArgs, REQUIRED)]),
        "contract_readData": RpcMethod(
            contract_api.read_data, [(Address, REQUIRED), (str, REQUIRED), (str, "hex")]
        ),
        "contract_readMap": RpcMethod(
            contract_api.read_map, [(Address, REQUIRED), (str, REQUIRED), (str, REQUIRED), (str, "hex")]
        ),
        "contract_readonlyCall": RpcMethod(contract_api.readonly_call, [(ReadonlyCallArgs, REQUIRED)]),
        "contract_getStake": RpcMethod(contract_api.get_stake, [(Address, REQUIRED)]),
        "contract_events": RpcMethod(contract_api.events, [(EventsArgs, REQUIRED)]),
        "contract_iterateMap": RpcMethod(contract_api.iterate_map, [
            (Address, REQUIRED), (str, REQUIRED), (str | None, None), (str, "hex"), (str, "hex"), (int, REQUIRED)
        ]),
    }
    return {name: m for name, m in methods.items() if name.split("_", 1)[0] in modules}


class JsonRpcDispatcher:
    """Executes JSON-RPC 2.0 request objects against a method table"""

    def __init__(self, methods: dict[str, RpcMethod]):
        self.methods = methods

    @staticmethod
    def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}

    def handle(self, request: Any) -> dict[str, Any]:
        if not isinstance(request, dict):
            return self._error(None, INVALID_REQUEST, "invalid request")
        request_id = request.get("id")
        method_name = request.get("method")
        if not isinstance(method_name, str):
            return self._error(request_id, INVALID_REQUEST, "invalid request")

        method = self.methods.get(method_name)
        if method is None:
            return self._error(request_id, METHOD_NOT_FOUND,
                               f"the method {method_name} does not exist/is not available")
        try:
            args = method.bind(request.get("params"))
            result = method.handler(*args)
        except RpcError as e:
            return self._error(request_id, e.code, e.message)
        except RunnerError as e:
            logger.debug(f"{method_name} failed: {e}")
            return self._error(request_id, RUNNER_ERROR, str(e))
        return {"jsonrpc": "2.0", "id": request_id, "result": jsonable_encoder(result, by_alias=True)}

    def dispatch(self, payload: Any) -> Any:
        if isinstance(payload, list):
            if not payload:
                return self._error(None, INVALID_REQUEST, "empty batch")
            return [self.handle(item) for item in payload]
        return self.handle(payload)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting ContractRunner RPC server...")
    yield
    logger.info("Shutting down ContractRunner RPC server...")


def create_app(chain: MemBlockchain, config: Settings | None = None) -> FastAPI:
    """Create the FastAPI application serving chain"""
    config = config or default_settings
    rpc_config = config.get_rpc_config()

    base_api = BaseApi(chain)
    dispatcher = JsonRpcDispatcher(build_methods(
        ContractApi(base_api, chain), ChainApi(base_api, chain), rpc_config["modules"]
    ))

    fast_app = FastAPI(
        title="ContractRunner",
        description="JSON-RPC endpoint of a local single-validator contract runner",
        version=__version__,
        lifespan=lifespan
    )
    fast_app.state.chain = chain
    fast_app.state.dispatcher = dispatcher

    @fast_app.post("/")
    async def rpc(request: Request):
        """JSON-RPC 2.0 endpoint"""
        body = await request.body()
        try:
            payload = json.loads(body)
        except ValueError:
            return JSONResponse(JsonRpcDispatcher._error(None, PARSE_ERROR, "parse error"))
        # Chain operations take locks and may produce blocks
        return JSONResponse(await run_in_threadpool(dispatcher.dispatch, payload))

    @fast_app.get("/health")
    async def health_check():
        """Health check endpoint"""
        head = chain.head
        return {
            "status": "healthy",
            "version": __version__,
            "height": head.height,
            "head": head.hash,
            "timestamp": time.time()
        }

    @fast_app.exception_handler(ChainFault)
    async def chain_fault_handler(_request, exc):
        logger.critical(f"Chain fault: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Chain fault", "message": str(exc)}
        )

    logger.info(f"RPC modules enabled: {', '.join(rpc_config['modules'])}")
    return fast_app
