"""
Calldata builders for the contracts the custodial account talks to.
"""

from __future__ import annotations

from typing import List, Sequence

from eth_utils import keccak

MAX_UINT256 = 2 ** 256 - 1

ERC20_TRANSFER_SELECTOR = "0xa9059cbb"
ERC20_APPROVE_SELECTOR = "0x095ea7b3"
ERC20_BALANCE_OF_SELECTOR = "0x70a08231"


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def encode_uint(value: int) -> str:
    if value < 0:
        raise ValueError("Value must be non-negative")
    if value > MAX_UINT256:
        raise ValueError("Value does not fit in 256 bits")
    return hex(value)[2:].rjust(64, "0")


def encode_address(address: str) -> str:
    addr = _strip_0x(address).lower()
    if len(addr) != 40:
        raise ValueError(f"Invalid address length: {address}")
    return addr.rjust(64, "0")


def encode_bytes(data: str) -> str:
    """Length-prefixed, right-padded encoding of a dynamic ``bytes`` value."""
    hex_data = _strip_0x(data)
    if len(hex_data) % 2 != 0:
        raise ValueError("Byte data must have an even-length hex string")
    data_len = len(hex_data) // 2
    padded_len = ((data_len + 31) // 32) * 32
    padding = "0" * ((padded_len - data_len) * 2)
    return encode_uint(data_len) + hex_data + padding


def selector(signature: str) -> str:
    return f"0x{keccak(text=signature)[:4].hex()}"


def decode_words(data: str) -> List[int]:
    """Split an ABI return value into 32-byte words."""
    hex_data = _strip_0x(data)
    return [int(hex_data[i:i + 64], 16) for i in range(0, len(hex_data), 64) if hex_data[i:i + 64]]


def build_erc20_transfer(recipient: str, amount: int) -> str:
    return ERC20_TRANSFER_SELECTOR + encode_address(recipient) + encode_uint(amount)


def build_erc20_approve(spender: str, amount: int = MAX_UINT256) -> str:
    return ERC20_APPROVE_SELECTOR + encode_address(spender) + encode_uint(amount)


def build_erc20_balance_of(owner: str) -> str:
    return ERC20_BALANCE_OF_SELECTOR + encode_address(owner)


def encode_dynamic_args(heads: Sequence[str | None], tails: Sequence[str]) -> str:
    """Encode a mix of static words and dynamic tails.

    ``heads`` holds the encoded static word, or ``None`` for each dynamic
    argument; ``tails`` holds the dynamic encodings in the same order.
    """
    head_size = 32 * len(heads)
    head = ""
    tail = ""
    tail_iter = iter(tails)
    for word in heads:
        if word is None:
            head += encode_uint(head_size + len(tail) // 2)
            tail += next(tail_iter)
        else:
            head += word
    return head + tail
