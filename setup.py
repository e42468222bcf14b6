"""
ContractRunner: a local smart contract runner

ContractRunner is a single-validator simulation node. It lets developers deploy, call, terminate and estimate
smart contract transactions against an in-memory ledger and read contract state back over JSON-RPC, without
a peer-to-peer network.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh.readlines() if line.strip() and not line.startswith("#")]

# Get version from the package
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '.'))
from contractrunner.units.version import get_version
from contractrunner import VERSION

setup(
    name="ContractRunner",
    version=get_version(VERSION),
    description="A local single-validator contract runner with a JSON-RPC interface",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=['contractrunner', 'contractrunner.*'], exclude=['tests*']),
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=8.0", "pytest-benchmark>=4.0", "hypothesis>=6.0"],
    },
    entry_points={
        "console_scripts": [
            "crn=contractrunner.cli:main",
            "contract-runner=contractrunner.cli:main",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 2 - Pre-Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Testing",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    keywords="blockchain, smart contracts, json-rpc, simulator",
)
