import json
import re
from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from types import MappingProxyType
from typing import Any

from eth_utils import keccak

from ._abi_types import Type, decode_args, dispatch_type
from ._entities import Address
from ._errors import ABIParseError, ConversionError, InvalidParam
from ._tokens import Token

ABI_JSON = None | bool | int | float | str | Sequence["ABI_JSON"] | Mapping[str, "ABI_JSON"]
"""Values serializable to JSON."""

# The number of bytes in a function selector.
SELECTOR_LENGTH = 4

# The largest number a JSON integer argument is converted into (a `uint64` token).
_MAX_UINT64 = 2**64 - 1

_UINT256_HEX_RE = re.compile(r"(?:0[xX])?([0-9a-fA-F]+)")


def _is_json_array(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes)


def _dump(value: Any) -> str:
    return json.dumps(value, default=repr)


def _get_field(
    entry: Mapping[str, Any], key: str, tp: type | tuple[type, ...], *, required: bool = False
) -> Any:
    if key not in entry or entry[key] is None:
        if required:
            raise ABIParseError(f"missing field `{key}` in {_dump(entry)}")
        return None
    value = entry[key]
    if not isinstance(value, tp):
        raise ABIParseError(
            f"invalid type of field `{key}`: {type(value).__name__} in {_dump(entry)}"
        )
    return value


class UnitType(Enum):
    """The kind of an ABI entry."""

    EVENT = "event"
    ERROR = "error"
    CONSTRUCTOR = "constructor"
    FUNCTION = "function"
    RECEIVE = "receive"
    FALLBACK = "fallback"

    @classmethod
    def from_json(cls, entry: ABI_JSON) -> "UnitType":
        if not isinstance(entry, str):
            raise ABIParseError(f"ABI entry type must be a string, got {_dump(entry)}")
        try:
            return cls(entry.lower())
        except ValueError as exc:
            raise ABIParseError(f"unknown ABI entry type: `{entry}`") from exc


@dataclass(frozen=True)
class Variable:
    """A declared input or output of an ABI entry."""

    name: str
    """The parameter name (may be empty)."""

    type: str
    """The declared ABI type signature, e.g. ``address[]``."""

    internal_type: str
    """The Solidity-level type, e.g. ``contract IERC20``."""

    @classmethod
    def from_json(cls, entry: ABI_JSON) -> "Variable":
        if not isinstance(entry, Mapping):
            raise ABIParseError(f"ABI variable must be an object, got {_dump(entry)}")
        name = _get_field(entry, "name", str, required=True)
        type_ = _get_field(entry, "type", str, required=True)
        # Compilers before solc 0.5.11 do not emit `internalType`
        internal_type = _get_field(entry, "internalType", str)
        return cls(
            name=name, type=type_, internal_type=internal_type if internal_type else type_
        )


def _variables_from_json(entry: Mapping[str, Any], key: str) -> None | tuple[Variable, ...]:
    variables = _get_field(entry, key, list)
    if variables is None:
        return None
    return tuple(Variable.from_json(variable) for variable in variables)


@dataclass(frozen=True)
class ABIUnit:
    """
    An entry of a contract ABI: a constructor, a function, an event, an error,
    or a receive/fallback method.
    """

    type: UnitType
    name: None | str = None
    anonymous: None | bool = None
    inputs: None | tuple[Variable, ...] = None
    """Declared inputs; ``None`` means the entry takes no arguments."""
    outputs: None | tuple[Variable, ...] = None
    state_mutability: None | str = None

    @classmethod
    def from_json(cls, entry: ABI_JSON) -> "ABIUnit":
        """Creates this object from a JSON ABI entry."""
        if not isinstance(entry, Mapping):
            raise ABIParseError(f"ABI entry must be an object, got {_dump(entry)}")
        if "type" not in entry:
            raise ABIParseError(f"missing field `type` in {_dump(entry)}")
        return cls(
            type=UnitType.from_json(entry["type"]),
            name=_get_field(entry, "name", str),
            anonymous=_get_field(entry, "anonymous", bool),
            inputs=_variables_from_json(entry, "inputs"),
            outputs=_variables_from_json(entry, "outputs"),
            state_mutability=_get_field(entry, "stateMutability", str),
        )

    @cached_property
    def signature(self) -> str:
        """The signature the selector is derived from, e.g. ``transfer(address,uint256)``."""
        types = ",".join(variable.type for variable in self.inputs or ())
        return f"{self.name or ''}({types})"

    @cached_property
    def selector(self) -> bytes:
        """Function selector."""
        return keccak(text=self.signature)[:SELECTOR_LENGTH]

    @cached_property
    def output_types(self) -> tuple[Type, ...]:
        """Parsed types of the declared outputs."""
        types = []
        for variable in self.outputs or ():
            try:
                types.append(dispatch_type(variable.type))
            except ValueError as exc:
                raise ABIParseError(
                    f"unsupported output type `{variable.type}` of `{self.signature}`"
                ) from exc
        return tuple(types)

    def decode_output(self, data: bytes) -> tuple[Any, ...]:
        """Decodes the values returned by a call to this function."""
        return decode_args(self.output_types, data)

    def to_params(self, value: ABI_JSON) -> list[Token]:
        """
        Matches the declared inputs against a JSON argument value
        and returns the call tokens in declaration order.

        A JSON array supplies one element per input; a scalar supplies the only input;
        ``null`` stands for "no inputs". Objects are not supported.
        If the entry declares no ``inputs`` at all, the value is ignored.
        """
        if self.inputs is None:
            return []

        if isinstance(value, Mapping):
            raise InvalidParam("Map type unsupported")

        if _json_length(value) != len(self.inputs):
            raise InvalidParam("params of abi parse failed")

        if value is None:
            return [Token.unit()]
        if isinstance(value, bool):
            return [Token.boolean(value)]
        if isinstance(value, int | float):
            return [number_to_token(value)]
        if isinstance(value, str):
            return [string_to_token(value, self.inputs[0])]
        if _is_json_array(value):
            return [
                value_to_token(item, variable)
                for item, variable in zip(value, self.inputs, strict=True)
            ]

        raise InvalidParam(f"Unsupported value type: {type(value).__name__}")

    def __str__(self) -> str:
        inputs = ", ".join(
            variable.type + ((" " + variable.name) if variable.name else "")
            for variable in self.inputs or ()
        )
        name = (" " + self.name) if self.name else ""
        mutability = (" " + self.state_mutability) if self.state_mutability else ""
        return f"{self.type.value}{name}({inputs}){mutability}"


def _json_length(value: ABI_JSON) -> int:
    if value is None:
        return 0
    if isinstance(value, Mapping) or _is_json_array(value):
        return len(value)
    return 1


def number_to_token(value: int | float) -> Token:
    """
    Converts a JSON number into a ``uint64`` token.
    Only integers are supported: JSON floats have no ABI counterpart.
    """
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= _MAX_UINT64:
        return Token.uint64(value)
    raise InvalidParam("f64 is not supported")


def _parse_uint256(value: str) -> Token:
    # Always hexadecimal, the prefix is optional
    match = _UINT256_HEX_RE.fullmatch(value)
    if not match:
        raise ValueError(f"Invalid hex integer: {value!r}")
    return Token.uint256(int(match.group(1), 16))


def string_to_token(value: str, variable: Variable) -> Token:
    """
    Converts a JSON string according to the declared type of the variable.
    Only ``address...`` and ``uint256...`` types have a string representation.
    """
    declared_type = variable.type

    if declared_type.startswith("address"):
        try:
            return Token.address(Address.from_hex(value))
        except ValueError as exc:
            raise ConversionError(value, declared_type, exc) from exc

    if declared_type.startswith("uint256"):
        try:
            return _parse_uint256(value)
        except ValueError as exc:
            raise ConversionError(value, declared_type, exc) from exc

    raise InvalidParam(f"convert {value} to type: {declared_type} failed")


def value_to_token(value: ABI_JSON, variable: Variable) -> Token:
    """
    Converts a single JSON value for the given variable.
    Nested arrays are converted element-wise using the same variable.
    """
    if isinstance(value, bool):
        return Token.boolean(value)
    if isinstance(value, int | float):
        return number_to_token(value)
    if isinstance(value, str):
        return string_to_token(value, variable)
    if _is_json_array(value):
        items = [value_to_token(item, variable) for item in value]
        try:
            return Token.array(items)
        except ValueError as exc:
            raise InvalidParam(f"{exc}, data: {_dump(value)}") from exc
    raise InvalidParam(f"Null and Map types are unsupported, data: {_dump(value)}")


class ContractABI:
    """
    A contract ABI reduced to what is needed to invoke the contract:
    the constructor and the functions by name.
    """

    constructor: ABIUnit
    """Contract's constructor."""

    functions: Mapping[str, ABIUnit]
    """Contract's functions by name."""

    @classmethod
    def from_json(cls, json_abi: ABI_JSON) -> "ContractABI":
        """
        Creates this object from a JSON ABI (e.g. generated by a Solidity compiler).

        The first constructor entry is used; if there are several functions
        with the same name, the first one is kept. Events, errors, and
        receive/fallback entries are validated, but not retained.
        """
        if not _is_json_array(json_abi):
            raise ABIParseError(f"ABI must be a list of entries, got {type(json_abi).__name__}")
        json_abi_typed: Sequence[ABI_JSON] = json_abi  # type: ignore[assignment]

        groups: dict[UnitType, list[ABIUnit]] = defaultdict(list)
        for entry in json_abi_typed:
            unit = ABIUnit.from_json(entry)
            groups[unit.type].append(unit)

        constructors = groups[UnitType.CONSTRUCTOR]
        if not constructors:
            raise ABIParseError("constructor not found")

        functions: dict[str, ABIUnit] = {}
        for unit in groups[UnitType.FUNCTION]:
            functions.setdefault(unit.name if unit.name is not None else "", unit)

        return cls(constructor=constructors[0], functions=functions)

    @classmethod
    def from_str(cls, text: str | bytes) -> "ContractABI":
        """Parses a serialized JSON ABI."""
        try:
            json_abi = json.loads(text)
        except ValueError as exc:
            raise ABIParseError(str(exc)) from exc
        return cls.from_json(json_abi)

    parse = from_str

    def __init__(self, constructor: ABIUnit, functions: Mapping[str, ABIUnit]):
        self.constructor = constructor
        self.functions = MappingProxyType(dict(functions))

    def __str__(self) -> str:
        indent = "    "
        units = [self.constructor, *self.functions.values()]
        return "{\n" + "\n".join(indent + str(unit) for unit in units) + "\n}"
