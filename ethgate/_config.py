import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from ._invoker import DEFAULT_DEPLOY_GAS
from ._server import DEFAULT_REQUEST_TIMEOUT

DEFAULT_RPC_URL = "http://localhost:8545"
DEFAULT_CONTRACTS_DIR = "./contracts"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_POLL_INTERVAL = 10
DEFAULT_RECEIPT_TIMEOUT = 120
DEFAULT_LOG_LEVEL = "INFO"

ENV_PREFIX = "ETHGATE_"


@dataclass
class Config:
    rpc_url: str = DEFAULT_RPC_URL
    contracts_dir: str = DEFAULT_CONTRACTS_DIR
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    deploy_gas: int = DEFAULT_DEPLOY_GAS
    poll_interval: float = DEFAULT_POLL_INTERVAL
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(ENV_PREFIX + name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from exc


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(ENV_PREFIX + name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from exc


def check_log_level(level: str) -> str:
    """Normalizes the name of a ``logging`` level."""
    normalized = level.strip().upper()
    if not isinstance(logging.getLevelName(normalized), int):
        raise ValueError(f"Unknown log level: {level!r}")
    return normalized


def load_config(env: None | Mapping[str, str] = None) -> Config:
    """Load configuration from environment variables."""
    if env is None:
        env = os.environ

    return Config(
        rpc_url=env.get(ENV_PREFIX + "RPC_URL", DEFAULT_RPC_URL),
        contracts_dir=env.get(ENV_PREFIX + "CONTRACTS_DIR", DEFAULT_CONTRACTS_DIR),
        host=env.get(ENV_PREFIX + "HOST", DEFAULT_HOST),
        port=_int(env, "PORT", DEFAULT_PORT),
        deploy_gas=_int(env, "DEPLOY_GAS", DEFAULT_DEPLOY_GAS),
        poll_interval=_float(env, "POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
        receipt_timeout=_float(env, "RECEIPT_TIMEOUT", DEFAULT_RECEIPT_TIMEOUT),
        request_timeout=_float(env, "REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        log_level=check_log_level(env.get(ENV_PREFIX + "LOG_LEVEL", DEFAULT_LOG_LEVEL)),
    )
