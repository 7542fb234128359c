import pytest

from ethgate import Config, GatewayServer, load_config
from ethgate._cli import _build_parser, build_server, config_from_args
from ethgate._config import check_log_level


def test_defaults() -> None:
    config = load_config({})
    assert config == Config()
    assert config.rpc_url == "http://localhost:8545"
    assert config.port == 8080
    assert config.deploy_gas == 3_000_000
    assert config.log_level == "INFO"


def test_from_environment() -> None:
    env = {
        "ETHGATE_RPC_URL": "http://node:8545",
        "ETHGATE_CONTRACTS_DIR": "/srv/contracts",
        "ETHGATE_HOST": "0.0.0.0",
        "ETHGATE_PORT": "9000",
        "ETHGATE_DEPLOY_GAS": "5000000",
        "ETHGATE_POLL_INTERVAL": "0.5",
        "ETHGATE_RECEIPT_TIMEOUT": "30",
        "ETHGATE_REQUEST_TIMEOUT": "15",
        "ETHGATE_LOG_LEVEL": "debug",
        "UNRELATED": "value",
    }
    assert load_config(env) == Config(
        rpc_url="http://node:8545",
        contracts_dir="/srv/contracts",
        host="0.0.0.0",
        port=9000,
        deploy_gas=5_000_000,
        poll_interval=0.5,
        receipt_timeout=30,
        request_timeout=15,
        log_level="DEBUG",
    )


def test_invalid_environment() -> None:
    with pytest.raises(ValueError, match="ETHGATE_PORT must be an integer, got 'http'"):
        load_config({"ETHGATE_PORT": "http"})
    with pytest.raises(ValueError, match="ETHGATE_POLL_INTERVAL must be a number, got 'often'"):
        load_config({"ETHGATE_POLL_INTERVAL": "often"})
    with pytest.raises(ValueError, match="Unknown log level: 'loud'"):
        load_config({"ETHGATE_LOG_LEVEL": "loud"})


def test_check_log_level() -> None:
    assert check_log_level(" warning ") == "WARNING"
    assert check_log_level("ERROR") == "ERROR"
    with pytest.raises(ValueError):
        check_log_level("verbose")


def test_command_line_overrides() -> None:
    config = load_config({"ETHGATE_PORT": "9000", "ETHGATE_HOST": "0.0.0.0"})

    args = _build_parser().parse_args(["--port", "8081", "--contracts-dir", "./build"])
    config = config_from_args(args, config)
    assert config.port == 8081
    assert config.contracts_dir == "./build"
    # Not overridden
    assert config.host == "0.0.0.0"

    args = _build_parser().parse_args(["--log-level", "debug"])
    assert config_from_args(args, config).log_level == "DEBUG"

    with pytest.raises(SystemExit):
        _build_parser().parse_args(["--log-level", "loud"])


def test_build_server() -> None:
    config = Config(host="127.0.0.1", port=8123, rpc_url="http://127.0.0.1:1")
    server = build_server(config)
    assert isinstance(server, GatewayServer)
    assert server.url == "http://127.0.0.1:8123"
