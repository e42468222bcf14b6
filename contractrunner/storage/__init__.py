"""
In-memory state storage for ContractRunner.
"""

from contractrunner.storage.memory_storage import OrderedStore
from contractrunner.storage.world_state import StateDB, AppState, ContractRecord

__all__ = ['OrderedStore', 'StateDB', 'AppState', 'ContractRecord']
