"""
Gas schedule of the embedded contract VM.
"""

BASE_TX_GAS = 2000
DEPLOY_GAS = 3000
READ_GAS = 100
WRITE_GAS = 200
WRITE_BYTE_GAS = 10
REMOVE_GAS = 50
EVENT_GAS = 100
EVENT_BYTE_GAS = 2
TRANSFER_GAS = 100


class OutOfGas(Exception):
    pass


class GasMeter:
    """Counts gas and enforces an optional limit"""

    def __init__(self, limit: int | None = None):
        self.limit = limit
        self.used = 0

    def consume(self, amount: int):
        self.used += amount
        if self.limit is not None and self.used > self.limit:
            self.used = self.limit
            raise OutOfGas("out of gas")
