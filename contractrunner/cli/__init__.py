"""
ContractRunner CLI Tool

Starts a local single-validator node with a funded god account and serves its
JSON-RPC endpoint. Blocks are only produced on request (chain_generateBlocks).
"""

import logging
import sys

import click

from contractrunner import __version__
from contractrunner.config.settings import get_settings
from contractrunner.runner import Runner
from contractrunner.security.security_utils import CryptoError


@click.command()
@click.option('--host', default=None, help='RPC host (default: CRN_RPC_HOST or localhost)')
@click.option('--port', type=int, default=None, help='RPC port (default: CRN_RPC_PORT or 3333)')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              default=None, help='Logging level')
@click.option('--god-key', default=None, help='Hex private key of the god account to reuse')
@click.option('--key-file', type=click.Path(dir_okay=False), default=None,
              help='Encrypted god key file, loaded when present and created otherwise')
@click.option('--password', envvar='CRN_KEY_PASSWORD', default=None,
              help='Password of the god key file (default: CRN_KEY_PASSWORD)')
@click.version_option(__version__, prog_name='contract-runner')
def crn(host, port, log_level, god_key, key_file, password):
    """ContractRunner - local smart contract runner"""
    base = type(get_settings())
    overrides = {}
    if host:
        overrides['RPC_HOST'] = host
    if port is not None:
        overrides['RPC_PORT'] = port
    if log_level:
        overrides['LOG_LEVEL'] = log_level.upper()
    config = type('CliSettings', (base,), overrides)

    errors = config.validate_config()
    if errors:
        for error in errors:
            click.echo(f"Configuration error: {error}", err=True)
        sys.exit(1)

    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)

    runner = Runner(config=config, god_key=god_key, key_file=key_file, password=password)
    try:
        runner.start()
    except (CryptoError, OSError) as e:
        click.echo(f"Error loading god key: {e}", err=True)
        sys.exit(1)
    runner.serve()


def main():
    crn()


if __name__ == '__main__':
    main()
