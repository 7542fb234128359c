from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from ._abi_types import AddressType, Array, Bool, Type, UInt, Unit, encode_args
from ._entities import Address

_UINT64 = UInt(64)
_UINT256 = UInt(256)


@dataclass(frozen=True)
class Token:
    """
    A typed value ready for contract call encoding.

    Use the named constructors; they check the value against the type.
    """

    type: Type
    """The ABI type the value is encoded as."""

    value: Any
    """
    The value: ``()`` for unit, ``bool``, ``int``, :py:class:`~ethgate.Address`,
    or a tuple of tokens for arrays.
    """

    @classmethod
    def unit(cls) -> "Token":
        """The empty value."""
        return cls(Unit(), ())

    @classmethod
    def boolean(cls, value: bool) -> "Token":
        Bool()._normalize(value)
        return cls(Bool(), value)

    @classmethod
    def uint64(cls, value: int) -> "Token":
        _UINT64._normalize(value)
        return cls(_UINT64, value)

    @classmethod
    def uint256(cls, value: int) -> "Token":
        _UINT256._normalize(value)
        return cls(_UINT256, value)

    @classmethod
    def address(cls, value: Address) -> "Token":
        AddressType()._normalize(value)
        return cls(AddressType(), value)

    @classmethod
    def array(cls, items: Iterable["Token"]) -> "Token":
        items = tuple(items)
        for item in items:
            if not isinstance(item, Token):
                raise TypeError(f"Array elements must be tokens, got {type(item).__name__}")
        return cls(Array(_common_type(items) or _UINT256), items)

    @property
    def raw(self) -> Any:
        """The value in the form accepted by the type's normalization."""
        if isinstance(self.type, Array):
            return [item.raw for item in self.value]
        return self.value


def _common_type(items: Sequence[Token]) -> None | Type:
    """
    Returns the type all the items can be encoded with,
    or ``None`` if there are no items to infer it from.
    """
    if not items:
        return None

    types = [item.type for item in items]

    # Integer tokens of different widths encode into the same 32-byte word
    if all(isinstance(tp, UInt) for tp in types):
        return max(types, key=lambda tp: tp.bits)  # type: ignore[attr-defined]

    # Nested arrays may differ in length and in the widths of their integers,
    # and an empty one fits any element type
    if all(isinstance(tp, Array) for tp in types):
        nested = [nested_item for item in items for nested_item in item.value]
        return Array(_common_type(nested) or _UINT256)

    for tp in types[1:]:
        if tp != types[0]:
            raise ValueError(f"Array elements must have the same type, got {types[0]} and {tp}")
    return types[0]


def encode_tokens(tokens: Iterable[Token]) -> bytes:
    """Encodes the tokens as a sequence of contract call arguments."""
    return encode_args(*((token.type, token.raw) for token in tokens))
