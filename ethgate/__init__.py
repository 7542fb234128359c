"""HTTP gateway translating JSON requests into Ethereum contract calls."""

from ._abi_types import (
    ABIDecodingError,
    AddressType,
    Array,
    Bool,
    Bytes,
    Int,
    String,
    Type,
    UInt,
    Unit,
    dispatch_type,
)
from ._chain import ChainClient, Web3ChainClient
from ._config import Config, load_config
from ._contract_abi import ABI_JSON, ABIUnit, ContractABI, UnitType, Variable
from ._entities import Address, TxHash
from ._errors import (
    ABIParseError,
    ChainError,
    ContractNotFound,
    ConversionError,
    GatewayError,
    InvalidParam,
    TransactionFailed,
)
from ._invoker import ContractInvoker, ContractStore, DeployRequest, InvokeRequest, parse_params
from ._server import GatewayServer, make_app
from ._tokens import Token, encode_tokens

__all__ = [
    "ABIDecodingError",
    "ABIParseError",
    "ABIUnit",
    "ABI_JSON",
    "Address",
    "AddressType",
    "Array",
    "Bool",
    "Bytes",
    "ChainClient",
    "ChainError",
    "Config",
    "ContractABI",
    "ContractInvoker",
    "ContractNotFound",
    "ContractStore",
    "ConversionError",
    "DeployRequest",
    "GatewayError",
    "GatewayServer",
    "Int",
    "InvalidParam",
    "InvokeRequest",
    "String",
    "Token",
    "TransactionFailed",
    "TxHash",
    "Type",
    "UInt",
    "Unit",
    "UnitType",
    "Variable",
    "Web3ChainClient",
    "dispatch_type",
    "encode_tokens",
    "load_config",
    "make_app",
    "parse_params",
]
