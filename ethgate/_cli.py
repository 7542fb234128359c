import argparse
import logging
from collections.abc import Sequence
from dataclasses import replace

import trio

from ._chain import Web3ChainClient
from ._config import Config, check_log_level, load_config
from ._invoker import ContractInvoker, ContractStore
from ._server import GatewayServer

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ethgate",
        description="HTTP gateway deploying, calling and querying Ethereum contracts.",
        allow_abbrev=False,
    )
    parser.add_argument("--host", help="Address to bind to. Defaults to ETHGATE_HOST.")
    parser.add_argument("--port", type=int, help="Port to bind to. Defaults to ETHGATE_PORT.")
    parser.add_argument(
        "--contracts-dir",
        help="Directory with <name>.abi and <name>.bin files. Defaults to ETHGATE_CONTRACTS_DIR.",
    )
    parser.add_argument("--rpc-url", help="Node RPC endpoint. Defaults to ETHGATE_RPC_URL.")
    parser.add_argument(
        "--log-level", type=check_log_level, help="Logging level. Defaults to ETHGATE_LOG_LEVEL."
    )
    return parser


def config_from_args(args: argparse.Namespace, config: Config) -> Config:
    """Applies the command line overrides to the configuration."""
    overrides = {
        field: getattr(args, field)
        for field in ("host", "port", "contracts_dir", "rpc_url", "log_level")
        if getattr(args, field) is not None
    }
    return replace(config, **overrides)


def setup_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def build_server(config: Config) -> GatewayServer:
    """Explicitly constructs the gateway components from the configuration."""
    client = Web3ChainClient.from_url(
        config.rpc_url,
        poll_interval=config.poll_interval,
        receipt_timeout=config.receipt_timeout,
    )
    store = ContractStore(config.contracts_dir)
    invoker = ContractInvoker(client, store, deploy_gas=config.deploy_gas)
    return GatewayServer(
        invoker, host=config.host, port=config.port, request_timeout=config.request_timeout
    )


def main(argv: None | Sequence[str] = None) -> None:
    args = _build_parser().parse_args(argv)
    config = config_from_args(args, load_config())
    setup_logging(config.log_level)

    logger.info("Starting up, node: %s, contracts: %s", config.rpc_url, config.contracts_dir)
    server = build_server(config)
    trio.run(server)
