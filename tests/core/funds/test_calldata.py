"""Tests for ABI calldata helpers."""

import pytest

from app.core.funds.calldata import (
    MAX_UINT256,
    build_erc20_approve,
    build_erc20_balance_of,
    build_erc20_transfer,
    decode_words,
    encode_address,
    encode_bytes,
    encode_dynamic_args,
    encode_uint,
    selector,
)

RECIPIENT = "0x3333333333333333333333333333333333333333"


def test_selector_matches_erc20_transfer():
    assert selector("transfer(address,uint256)") == "0xa9059cbb"


def test_encode_uint_pads_to_word():
    assert encode_uint(1) == "0" * 63 + "1"
    assert encode_uint(MAX_UINT256) == "f" * 64


def test_encode_uint_rejects_out_of_range():
    with pytest.raises(ValueError):
        encode_uint(-1)
    with pytest.raises(ValueError):
        encode_uint(MAX_UINT256 + 1)


def test_encode_address_lowercases_and_pads():
    encoded = encode_address("0xABCDEFabcdefABCDEFabcdefABCDEFabcdefABCD")
    assert encoded == "0" * 24 + "abcdefabcdef" * 3 + "abcd"


def test_encode_address_rejects_bad_length():
    with pytest.raises(ValueError):
        encode_address("0x1234")


def test_encode_bytes_right_pads():
    encoded = encode_bytes("0xdeadbeef")
    assert encoded[:64] == encode_uint(4)
    assert encoded[64:] == "deadbeef" + "0" * 56


def test_encode_empty_bytes():
    assert encode_bytes("0x") == encode_uint(0)


def test_erc20_transfer():
    data = build_erc20_transfer(RECIPIENT, 1_000_000)

    assert data.startswith("0xa9059cbb")
    assert len(data) == 2 + 8 + 128
    assert data.endswith(encode_uint(1_000_000))


def test_erc20_approve_defaults_to_max():
    assert build_erc20_approve(RECIPIENT).endswith("f" * 64)


def test_balance_of():
    assert build_erc20_balance_of(RECIPIENT) == "0x70a08231" + encode_address(RECIPIENT)


def test_dynamic_args_offsets():
    tail = encode_bytes("0xab")
    encoded = encode_dynamic_args([None, encode_uint(7)], [tail])

    # Two head words, so the tail starts at byte 64
    assert encoded[:64] == encode_uint(64)
    assert encoded[64:128] == encode_uint(7)
    assert encoded[128:] == tail


def test_decode_words():
    assert decode_words("0x" + encode_uint(5) + encode_uint(9)) == [5, 9]
    assert decode_words("0x") == []
