from abc import ABC, abstractmethod
from functools import cached_property
from typing import Any, TypeVar, cast

from eth_utils import decode_hex, is_hex_address, to_checksum_address

TypedDataLike = TypeVar("TypedDataLike", bound="TypedData")


class TypedData(ABC):
    def __init__(self, value: bytes):
        if not isinstance(value, bytes):
            raise TypeError(
                f"{self.__class__.__name__} must be a bytestring, got {type(value).__name__}"
            )
        if len(value) != self._length():
            raise ValueError(
                f"{self.__class__.__name__} must be {self._length()} bytes long, got {len(value)}"
            )
        self._value = value

    @abstractmethod
    def _length(self) -> int:
        """Returns the length of this type's values representation in bytes."""

    def __bytes__(self) -> bytes:
        return self._value

    def __hash__(self) -> int:
        return hash(self._value)

    def _check_type(self: TypedDataLike, other: Any) -> TypedDataLike:
        if type(self) != type(other):
            raise TypeError(f"Incompatible types: {type(self).__name__} and {type(other).__name__}")
        return cast(TypedDataLike, other)

    def __eq__(self, other: object) -> bool:
        return self._value == self._check_type(other)._value

    def __str__(self) -> str:
        return "0x" + self._value.hex()

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(bytes.fromhex("{self._value.hex()}"))'


class Address(TypedData):
    """Represents an Ethereum address."""

    def _length(self) -> int:
        return 20

    @classmethod
    def from_hex(cls, address_str: str) -> "Address":
        """
        Creates the address from a hex representation
        (with or without the ``0x`` prefix, in any letter case).
        The checksum of a mixed-case string is not verified.
        """
        if not is_hex_address(address_str):
            raise ValueError(f"Invalid address: {address_str!r} (expected 40 hex digits)")
        return cls(decode_hex(address_str))

    @cached_property
    def checksum(self) -> str:
        """Returns the checksummed hex representation of the address."""
        return to_checksum_address(self._value)

    def __str__(self) -> str:
        return self.checksum

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}.from_hex({self.checksum})"


class TxHash(TypedData):
    """A transaction hash."""

    def _length(self) -> int:
        return 32
