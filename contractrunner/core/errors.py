"""
Error types for ContractRunner.

Every failure a client can cause is a RunnerError subclass and is returned to the
caller as a structured failure. ChainFault is outside that hierarchy:
it signals that a self-produced block or certificate was rejected by the chain's
own validity checks, which means the simulation itself is broken.
"""


class RunnerError(Exception):
    """Base class for errors returned to RPC callers"""
    pass


class BuildError(RunnerError):
    """A transaction could not be built from the request"""
    pass


class FormatError(BuildError):
    """A typed argument could not be encoded or decoded"""

    def __init__(self, format_name: str, value):
        self.format_name = format_name
        self.value = value
        super().__init__(f'cannot parse {format_name}: "{value}"')


class NoSignerError(BuildError):
    """The sender could not be resolved to a key the node holds"""
    pass


class ValidationError(RunnerError):
    """A transaction was rejected by ledger rules"""
    pass


class ExecutionError(RunnerError):
    """Contract execution failed outside of a transaction receipt"""
    pass


class NotFoundError(RunnerError):
    """Requested key, block or transaction does not exist"""
    pass


class ResetError(RunnerError):
    """The chain cannot be reset to the requested height"""
    pass


class ChainFault(RuntimeError):
    """Unrecoverable failure of local block production"""
    pass
