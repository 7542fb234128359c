import pytest

from ethgate import Address, AddressType, Array, Bool, Token, UInt, Unit, encode_tokens


def word(value: int) -> bytes:
    return value.to_bytes(32, "big")


def test_constructors() -> None:
    assert Token.unit() == Token(Unit(), ())
    assert Token.boolean(True) == Token(Bool(), True)
    assert Token.uint64(42) == Token(UInt(64), 42)
    assert Token.uint256(2**200) == Token(UInt(256), 2**200)

    address = Address(b"\x01" * 20)
    assert Token.address(address) == Token(AddressType(), address)


def test_constructors_check_values() -> None:
    with pytest.raises(TypeError, match="`bool` must correspond to a `bool`-type value, got int"):
        Token.boolean(1)  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="`uint64` must correspond to an unsigned integer"):
        Token.uint64(2**64)
    with pytest.raises(ValueError, match="`uint256` must correspond to a non-negative integer"):
        Token.uint256(-1)
    with pytest.raises(TypeError, match="`address` must correspond to an `Address`-type value"):
        Token.address("0x" + "01" * 20)  # type: ignore[arg-type]


def test_array() -> None:
    tokens = Token.array([Token.uint64(1), Token.uint64(2)])
    assert tokens.type == Array(UInt(64))
    assert tokens.value == (Token.uint64(1), Token.uint64(2))
    assert tokens.raw == [1, 2]

    # Mixed integer widths are encoded with the widest one
    mixed = Token.array([Token.uint64(1), Token.uint256(2**100)])
    assert mixed.type == Array(UInt(256))

    nested = Token.array([Token.array([Token.boolean(True)]), Token.array([])])
    assert nested.type == Array(Array(Bool()))
    assert nested.raw == [[True], []]

    assert Token.array([]).type == Array(UInt(256))

    with pytest.raises(TypeError, match="Array elements must be tokens, got int"):
        Token.array([1])  # type: ignore[list-item]


def test_encode_tokens() -> None:
    assert encode_tokens([]) == b""
    assert encode_tokens([Token.unit()]) == b""
    assert encode_tokens([Token.uint256(42)]) == word(42)
    assert encode_tokens([Token.uint64(42), Token.boolean(True)]) == word(42) + word(1)

    address = Address(b"\x01" * 20)
    assert encode_tokens([Token.address(address)]) == b"\x00" * 12 + b"\x01" * 20

    # A dynamic array: offset, length, elements
    assert encode_tokens([Token.array([Token.uint64(7), Token.uint64(8)])]) == (
        word(32) + word(2) + word(7) + word(8)
    )


def test_array_element_types() -> None:
    # Nested arrays may have different lengths and integer widths
    nested = Token.array(
        [
            Token.array([Token.uint64(1)]),
            Token.array([Token.uint256(2**100), Token.uint64(3)]),
            Token.array([]),
        ]
    )
    assert nested.type == Array(Array(UInt(256)))

    # An empty nested array takes the type of its siblings
    nested = Token.array([Token.array([]), Token.array([Token.boolean(True)])])
    assert nested.type == Array(Array(Bool()))

    with pytest.raises(
        ValueError, match="Array elements must have the same type, got bool and uint64"
    ):
        Token.array([Token.boolean(True), Token.uint64(5)])

    with pytest.raises(ValueError, match="got uint64 and bool"):
        Token.array([Token.array([Token.uint64(1)]), Token.array([Token.boolean(False)])])

    with pytest.raises(ValueError, match=r"got uint64 and uint256\[\]"):
        Token.array([Token.array([Token.uint64(1)]), Token.array([Token.array([])])])
