"""
Test suite for the command line entry point and the runner wiring
"""

import json

import pytest
from click.testing import CliRunner

from contractrunner import __version__
from contractrunner.cli import crn
from contractrunner.config.settings import TestingSettings
from contractrunner.runner import Runner
from contractrunner.security.security_utils import CryptoError, KeyPair


def test_version_option():
    result = CliRunner().invoke(crn, ['--version'])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_invalid_port_is_rejected():
    """Test that configuration errors stop the CLI before serving"""
    result = CliRunner().invoke(crn, ['--port', '0'])
    assert result.exit_code == 1
    assert "RPC_PORT must be between 1 and 65535" in result.output


def test_invalid_god_key_is_rejected():
    result = CliRunner().invoke(crn, ['--god-key', 'zz'])
    assert result.exit_code == 1
    assert "Error loading god key" in result.output


def test_runner_reuses_god_key():
    """Test that a given private key becomes the funded god account"""
    key = KeyPair.generate()
    runner = Runner(config=TestingSettings, god_key="0x" + key.private_key)
    app = runner.start()

    assert runner.chain.god_address == key.address
    assert app.state.chain is runner.chain
    balance = runner.chain.readonly_app_state().state.get_balance(key.address)
    assert balance == TestingSettings.get_chain_config()["god_balance"]


def test_runner_generates_god_key():
    runner = Runner(config=TestingSettings)
    runner.start()
    assert runner.chain.key_store.can_sign(runner.chain.god_address)


def test_runner_creates_and_reloads_key_file(tmp_path):
    """Test that the god key survives restarts through an encrypted key file"""
    key_file = tmp_path / "god.json"
    first = Runner(config=TestingSettings, key_file=str(key_file), password="secret")
    first.start()

    vault = json.loads(key_file.read_text())
    assert vault["address"] == first.chain.god_address
    assert first.chain.key_store.get_key(first.chain.god_address).private_key not in key_file.read_text()

    second = Runner(config=TestingSettings, key_file=str(key_file), password="secret")
    second.start()
    assert second.chain.god_address == first.chain.god_address
    assert second.chain.key_store.can_sign(second.chain.god_address)


def test_runner_saves_given_god_key(tmp_path):
    key = KeyPair.generate()
    key_file = tmp_path / "god.json"
    Runner(config=TestingSettings, god_key=key.private_key, key_file=str(key_file), password="pw").start()

    runner = Runner(config=TestingSettings, key_file=str(key_file), password="pw")
    runner.start()
    assert runner.chain.god_address == key.address


def test_runner_key_file_errors(tmp_path):
    key_file = tmp_path / "god.json"
    with pytest.raises(CryptoError, match="password is required"):
        Runner(config=TestingSettings, key_file=str(key_file)).start()
    assert not key_file.exists()

    Runner(config=TestingSettings, key_file=str(key_file), password="right").start()
    with pytest.raises(CryptoError, match="Invalid key password"):
        Runner(config=TestingSettings, key_file=str(key_file), password="wrong").start()


def test_cli_rejects_bad_key_file(tmp_path):
    """Test that key file problems stop the CLI before serving"""
    key_file = tmp_path / "god.json"
    result = CliRunner().invoke(crn, ['--key-file', str(key_file)], env={'CRN_KEY_PASSWORD': None})
    assert result.exit_code == 1
    assert "Error loading god key" in result.output

    Runner(config=TestingSettings, key_file=str(key_file), password="right").start()
    result = CliRunner().invoke(crn, ['--key-file', str(key_file)], env={'CRN_KEY_PASSWORD': 'wrong'})
    assert result.exit_code == 1
    assert "Invalid key password" in result.output
