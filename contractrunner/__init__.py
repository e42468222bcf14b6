"""
ContractRunner
==============

A local single-validator simulation node for deploying, calling and estimating
smart-contract transactions against an in-memory ledger.
"""

from contractrunner.units.version import get_version

VERSION = (0, 1, 0, "final", 0)

__version__ = get_version(VERSION)

__all__ = ["VERSION", "__version__"]
