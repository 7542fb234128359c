import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import anyio
from eth_utils import decode_hex, encode_hex

from ._abi_types import ABIDecodingError
from ._chain import ChainClient
from ._contract_abi import ABI_JSON, ABIUnit, ContractABI
from ._entities import Address, TxHash
from ._errors import ChainError, ContractNotFound, InvalidParam
from ._tokens import Token, encode_tokens

logger = logging.getLogger(__name__)

ABI_SUFFIX = ".abi"
BYTECODE_SUFFIX = ".bin"

DEFAULT_DEPLOY_GAS = 3_000_000

WEI_PER_ETHER = 10**18

_REQUIRED = object()


class ContractStore:
    """
    A directory of compiled contracts: ``<name>.abi`` holds the JSON ABI,
    ``<name>.bin`` holds the hex-encoded deployment bytecode.
    """

    def __init__(self, root: str | os.PathLike[str]):
        self._root = anyio.Path(root)

    def _path(self, contract_name: str, suffix: str) -> anyio.Path:
        if (
            not contract_name
            or contract_name in (".", "..")
            or "/" in contract_name
            or "\\" in contract_name
        ):
            raise InvalidParam(f"invalid contract name: {contract_name!r}")
        return self._root / (contract_name + suffix)

    async def _read(self, contract_name: str, suffix: str) -> str:
        path = self._path(contract_name, suffix)
        try:
            return await path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ContractNotFound(contract_name, str(path)) from exc

    async def abi_text(self, contract_name: str) -> str:
        """Returns the serialized JSON ABI of the contract."""
        return await self._read(contract_name, ABI_SUFFIX)

    async def bytecode(self, contract_name: str) -> bytes:
        """Returns the deployment bytecode of the contract."""
        text = (await self._read(contract_name, BYTECODE_SUFFIX)).strip()
        try:
            return decode_hex(text)
        except ValueError as exc:
            raise ValueError(f"Malformed bytecode of contract `{contract_name}`") from exc


def _request_field(body: Mapping[str, Any], key: str, tp: type, default: Any = _REQUIRED) -> Any:
    if key not in body or body[key] is None:
        if default is _REQUIRED:
            raise InvalidParam(f"missing field `{key}`")
        return default
    value = body[key]
    if not isinstance(value, tp) or (tp is int and isinstance(value, bool)):
        raise InvalidParam(f"field `{key}` must be of type {tp.__name__}")
    return value


def _request_body(body: ABI_JSON) -> Mapping[str, Any]:
    if not isinstance(body, Mapping):
        raise InvalidParam("request body must be a JSON object")
    return body


def _confirmations(body: Mapping[str, Any]) -> int:
    confirmations = _request_field(body, "confirmations", int, 0)
    if confirmations < 0:
        raise InvalidParam("field `confirmations` must be non-negative")
    return confirmations


@dataclass
class DeployRequest:
    """A request to deploy a contract from the store."""

    from_account: str
    contract_name: str
    contract_params: ABI_JSON = None
    confirmations: int = 0

    @classmethod
    def from_json(cls, json: ABI_JSON) -> "DeployRequest":
        body = _request_body(json)
        return cls(
            from_account=_request_field(body, "from_account", str),
            contract_name=_request_field(body, "contract_name", str),
            contract_params=body.get("contract_params"),
            confirmations=_confirmations(body),
        )


@dataclass
class InvokeRequest:
    """A request to call or query a function of a deployed contract."""

    contract_name: str
    contract_address: str
    fn_name: str
    from_account: None | str = None
    fn_params: ABI_JSON = None
    confirmations: int = 0

    @classmethod
    def from_json(cls, json: ABI_JSON) -> "InvokeRequest":
        body = _request_body(json)
        return cls(
            contract_name=_request_field(body, "contract_name", str),
            contract_address=_request_field(body, "contract_address", str),
            fn_name=_request_field(body, "fn_name", str),
            from_account=_request_field(body, "from_account", str, None),
            fn_params=body.get("fn_params"),
            confirmations=_confirmations(body),
        )


def _parse_address(address_str: str, field: str) -> Address:
    try:
        return Address.from_hex(address_str)
    except ValueError as exc:
        raise InvalidParam(f"{field}: {address_str} parse failed") from exc


def find_function(contract_abi: ContractABI, fn_name: str) -> ABIUnit:
    try:
        return contract_abi.functions[fn_name]
    except KeyError as exc:
        raise InvalidParam("function not found in abi") from exc


def parse_params(abi_text: str, fn_name: str, fn_params: ABI_JSON) -> list[Token]:
    """
    Parses the ABI and converts the JSON arguments of the named function into call tokens.
    """
    return find_function(ContractABI.from_str(abi_text), fn_name).to_params(fn_params)


def render_value(value: Any) -> str:
    """Renders a decoded output value as a string."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return encode_hex(value)
    if isinstance(value, list | tuple):
        return "[" + ", ".join(render_value(item) for item in value) + "]"
    return str(value)


class ContractInvoker:
    """
    Deploys, calls and queries contracts from a :py:class:`ContractStore`
    using a :py:class:`ChainClient`.
    """

    def __init__(
        self, client: ChainClient, store: ContractStore, *, deploy_gas: int = DEFAULT_DEPLOY_GAS
    ):
        self._client = client
        self._store = store
        self._deploy_gas = deploy_gas

    async def accounts(self) -> list[Address]:
        """Returns the accounts managed by the node."""
        return await self._client.accounts()

    async def balance(self, account: str) -> int:
        """Returns the balance of the account in whole ether (rounded down)."""
        address = _parse_address(account, "account")
        balance_wei = await self._client.balance(address)
        return balance_wei // WEI_PER_ETHER

    async def deploy(self, request: DeployRequest) -> Address:
        """Deploys the contract and returns its address."""
        from_account = _parse_address(request.from_account, "from_account")

        contract_abi = ContractABI.from_str(await self._store.abi_text(request.contract_name))
        bytecode = await self._store.bytecode(request.contract_name)
        params = contract_abi.constructor.to_params(request.contract_params)
        logger.debug("Constructor params of %s: %s", request.contract_name, params)

        address = await self._client.deploy(
            from_account,
            bytecode + encode_tokens(params),
            gas=self._deploy_gas,
            confirmations=request.confirmations,
        )
        logger.info(
            "Deployed contract %s, account: %s, address: %s",
            request.contract_name,
            from_account,
            address,
        )
        return address

    async def _prepare(self, request: InvokeRequest) -> tuple[Address, bytes, ABIUnit]:
        abi_text = await self._store.abi_text(request.contract_name)
        function = find_function(ContractABI.from_str(abi_text), request.fn_name)
        params = function.to_params(request.fn_params)
        logger.debug("Params of %s.%s: %s", request.contract_name, function.signature, params)

        contract_address = _parse_address(request.contract_address, "contract_address")
        return contract_address, function.selector + encode_tokens(params), function

    async def call(self, request: InvokeRequest) -> TxHash:
        """Sends a transaction calling the contract function and returns its hash."""
        contract_address, data, function = await self._prepare(request)
        if request.from_account is None:
            raise InvalidParam("missing field `from_account`")
        from_account = _parse_address(request.from_account, "from_account")

        tx_hash = await self._client.transact(
            from_account, contract_address, data, confirmations=request.confirmations
        )
        logger.info(
            "Called %s.%s at %s, account: %s, tx: %s",
            request.contract_name,
            function.signature,
            contract_address,
            from_account,
            tx_hash,
        )
        return tx_hash

    async def query(self, request: InvokeRequest) -> list[str]:
        """Calls the contract function without a transaction and returns the rendered outputs."""
        contract_address, data, function = await self._prepare(request)
        from_account = (
            _parse_address(request.from_account, "from_account")
            if request.from_account is not None
            else None
        )

        output = await self._client.call(contract_address, data, from_account)
        try:
            values = function.decode_output(output)
        except ABIDecodingError as exc:
            raise ChainError(str(exc)) from exc
        return [render_value(value) for value in values]
