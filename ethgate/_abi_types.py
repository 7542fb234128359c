import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from functools import cached_property
from typing import Any

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError

from ._entities import Address


class ABIDecodingError(Exception):
    """Raised on an error when decoding a value in an Eth ABI encoded bytestring."""


def decode_abi(types: Sequence[str], data: bytes) -> tuple[Any, ...]:
    try:
        return decode(types, data)
    except DecodingError as exc:
        # wrap possible `eth_abi` errors
        message = (
            f"Could not decode the return value "
            f"with the expected signature ({','.join(types)}): {exc}"
        )
        raise ABIDecodingError(message) from exc


class Type(ABC):
    """The base type for Solidity types."""

    @property
    @abstractmethod
    def canonical_form(self) -> str:
        """Returns the type as a string in the canonical form (for ``eth_abi`` consumption)."""
        ...

    @abstractmethod
    def _normalize(self, val: Any) -> Any:
        """
        Checks and possibly normalizes the value making it ready to be passed
        to ``encode()`` for encoding.
        """
        ...

    @abstractmethod
    def _denormalize(self, val: Any) -> Any:
        """
        Checks the result of ``decode()``
        and wraps it in a specific type, if applicable.
        """
        ...

    def encode(self, val: Any) -> bytes:
        """Encodes the given value in the contract ABI format."""
        return encode([self.canonical_form], [self._normalize(val)])

    def decode(self, val: bytes) -> Any:
        """Decodes the given bytestring in the contract ABI format."""
        return self._denormalize(decode_abi([self.canonical_form], val)[0])

    def __str__(self) -> str:
        return self.canonical_form

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.canonical_form}>"


class _Elementary(Type):
    """
    A type whose values are checked with ``isinstance`` and passed to ``eth_abi`` as is.
    Two elementary types are equal if they have the same class and canonical form.
    """

    _value_type: type | tuple[type, ...]
    _value_description: str
    _rejected_type: tuple[type, ...] = ()

    def _check_val(self, val: Any) -> None:
        if not isinstance(val, self._value_type) or isinstance(val, self._rejected_type):
            raise TypeError(
                f"`{self.canonical_form}` must correspond to {self._value_description}, "
                f"got {type(val).__name__}"
            )

    def _normalize(self, val: Any) -> Any:
        self._check_val(val)
        return val

    def _denormalize(self, val: Any) -> Any:
        self._check_val(val)
        return val

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, _Elementary)
            and type(self) is type(other)
            and self.canonical_form == other.canonical_form
        )

    def __hash__(self) -> int:
        return hash((type(self), self.canonical_form))


class _Integer(_Elementary):
    _prefix: str
    _value_type = int
    _value_description = "an integer"
    # `bool` is a subclass of `int`, so it has to be excluded explicitly
    _rejected_type = (bool,)

    def __init__(self, bits: int):
        if bits <= 0 or bits > 256 or bits % 8 != 0:
            raise ValueError(f"Incorrect `{self._prefix}` bit size: {bits}")
        self._bits = bits

    @property
    def bits(self) -> int:
        return self._bits

    @property
    def canonical_form(self) -> str:
        return f"{self._prefix}{self._bits}"

    @abstractmethod
    def _check_range(self, val: int) -> None: ...

    def _check_val(self, val: Any) -> None:
        super()._check_val(val)
        self._check_range(val)


class UInt(_Integer):
    """Corresponds to the Solidity ``uint<bits>`` type."""

    _prefix = "uint"

    def _check_range(self, val: int) -> None:
        if val < 0:
            raise ValueError(
                f"`{self.canonical_form}` must correspond to a non-negative integer, got {val}"
            )
        if val >> self._bits != 0:
            raise ValueError(
                f"`{self.canonical_form}` must correspond to an unsigned integer "
                f"under {self._bits} bits, got {val}"
            )


class Int(_Integer):
    """Corresponds to the Solidity ``int<bits>`` type."""

    _prefix = "int"

    def _check_range(self, val: int) -> None:
        if not -(1 << (self._bits - 1)) <= val < (1 << (self._bits - 1)):
            raise ValueError(
                f"`{self.canonical_form}` must correspond to a signed integer "
                f"under {self._bits} bits, got {val}"
            )


class Bytes(_Elementary):
    """Corresponds to the Solidity ``bytes<size>`` type (``bytes`` if ``size`` is ``None``)."""

    _value_type = bytes
    _value_description = "a bytestring"

    def __init__(self, size: None | int = None):
        if size is not None and (size <= 0 or size > 32):
            raise ValueError(f"Incorrect `bytes` size: {size}")
        self._size = size

    @property
    def canonical_form(self) -> str:
        return "bytes" + (str(self._size) if self._size else "")

    def _check_val(self, val: Any) -> None:
        super()._check_val(val)
        if self._size is not None and len(val) != self._size:
            raise ValueError(f"Expected {self._size} bytes, got {len(val)}")


class AddressType(_Elementary):
    """
    Corresponds to the Solidity ``address`` type.
    Not to be confused with :py:class:`~ethgate.Address` which represents an address value.
    """

    canonical_form = "address"
    _value_type = Address
    _value_description = "an `Address`-type value"

    def _normalize(self, val: Any) -> bytes:
        self._check_val(val)
        return bytes(val)

    def _denormalize(self, val: Any) -> Address:
        # `eth_abi` decodes addresses into checksummed hex strings
        return Address.from_hex(val)


class String(_Elementary):
    canonical_form = "string"
    _value_type = str
    _value_description = "a `str`-type value"


class Bool(_Elementary):
    canonical_form = "bool"
    _value_type = bool
    _value_description = "a `bool`-type value"


class Unit(Type):
    """
    The empty value, produced for a JSON ``null`` argument.
    It occupies no space in the encoded arguments.
    """

    @property
    def canonical_form(self) -> str:
        return "()"

    def _check_val(self, val: Any) -> None:
        if val != ():
            raise ValueError(f"The unit type only admits `()`, got {val!r}")

    def _normalize(self, val: Any) -> tuple[()]:
        self._check_val(val)
        return ()

    def _denormalize(self, val: Any) -> tuple[()]:
        self._check_val(val)
        return ()

    def encode(self, val: Any) -> bytes:
        self._check_val(val)
        return b""

    def decode(self, val: bytes) -> tuple[()]:
        return ()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Unit)

    def __hash__(self) -> int:
        return hash(Unit)


class Array(Type):
    """Corresponds to the Solidity array (``[<size>]``) type."""

    def __init__(self, element_type: Type, size: None | int = None):
        self._element_type = element_type
        self._size = size

    @property
    def element_type(self) -> Type:
        return self._element_type

    @cached_property
    def canonical_form(self) -> str:
        return (
            self._element_type.canonical_form + "[" + (str(self._size) if self._size else "") + "]"
        )

    def _check_val(self, val: Any) -> None:
        if not isinstance(val, Sequence) or isinstance(val, str | bytes):
            raise TypeError(f"Expected a sequence, got {type(val).__name__}")
        if self._size is not None and len(val) != self._size:
            raise ValueError(f"Expected {self._size} elements, got {len(val)}")

    def _normalize(self, val: Any) -> list[Any]:
        self._check_val(val)
        return [self._element_type._normalize(item) for item in val]

    def _denormalize(self, val: Any) -> list[Any]:
        self._check_val(val)
        return [self._element_type._denormalize(item) for item in val]

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, Array)
            and self._element_type == other._element_type
            and self._size == other._size
        )

    def __hash__(self) -> int:
        return hash((Array, self._element_type, self._size))


_UINT_RE = re.compile(r"uint(\d+)?")
_INT_RE = re.compile(r"int(\d+)?")
_BYTES_RE = re.compile(r"bytes(\d+)?")
_ARRAY_RE = re.compile(r"^(.*?)\[(\d+)?\]$")

_NO_PARAMS = {
    "address": AddressType(),
    "string": String(),
    "bool": Bool(),
}


def type_from_abi_string(abi_string: str) -> Type:
    """Parses a non-array elementary type name (``uint`` and ``int`` mean 256 bits)."""
    if match := _UINT_RE.fullmatch(abi_string):
        return UInt(int(match.group(1) or 256))
    elif match := _INT_RE.fullmatch(abi_string):
        return Int(int(match.group(1) or 256))
    elif match := _BYTES_RE.fullmatch(abi_string):
        size = match.group(1)
        return Bytes(int(size) if size else None)
    elif abi_string in _NO_PARAMS:
        return _NO_PARAMS[abi_string]
    else:
        raise ValueError(f"Unknown type: {abi_string}")


def dispatch_type(type_str: str) -> Type:
    """Parses a declared type signature, e.g. ``address[]`` or ``uint8[3][]``."""
    match = _ARRAY_RE.match(type_str)
    if match:
        element_type_name, array_size = match.groups()
        size = int(array_size) if array_size is not None else None
        return Array(dispatch_type(element_type_name), size)
    return type_from_abi_string(type_str)


def encode_args(*types_and_args: tuple[Type, Any]) -> bytes:
    types = [tp for tp, _arg in types_and_args if not isinstance(tp, Unit)]
    args = [tp._normalize(arg) for tp, arg in types_and_args if not isinstance(tp, Unit)]
    return encode([tp.canonical_form for tp in types], args)


def decode_args(types: Iterable[Type], data: bytes) -> tuple[Any, ...]:
    types = list(types)
    values = decode_abi([tp.canonical_form for tp in types], data)
    return tuple(tp._denormalize(value) for tp, value in zip(types, values, strict=True))
