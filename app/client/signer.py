"""
Local private-key wallet for the CLI.

Signs the Sign-In with Ethereum message and EIP-712 spend permission grants.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from eth_account import Account
from eth_account.messages import encode_defunct
from siwe import SiweMessage

from ..services.address import addresses_equal

EIP712_DOMAIN_FIELDS = [
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
]


def _hex(signature: bytes) -> str:
    return "0x" + bytes(signature).hex()


class LocalKeySigner:
    def __init__(self, private_key: str):
        self.account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self.account.address

    def build_sign_in_message(
        self,
        api_base_url: str,
        nonce: str,
        chain_id: int,
        statement: Optional[str] = "Sign in to SpendChat",
    ) -> str:
        parsed = urlparse(api_base_url)
        message = SiweMessage(
            domain=parsed.netloc or parsed.path,
            address=self.address,
            statement=statement,
            uri=api_base_url,
            version="1",
            chain_id=chain_id,
            nonce=nonce,
            issued_at=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
        )
        return message.prepare_message()

    def sign_message(self, message: str) -> str:
        signed = self.account.sign_message(encode_defunct(text=message))
        return _hex(signed.signature)

    async def sign_typed_data(self, account: str, typed_data: Dict[str, Any]) -> str:
        if not addresses_equal(account, self.address):
            raise ValueError(f"Signer {self.address} cannot sign for {account}")

        full_message = _with_domain_type(typed_data)
        signed = self.account.sign_typed_data(full_message=full_message)
        return _hex(signed.signature)


def _with_domain_type(typed_data: Dict[str, Any]) -> Dict[str, Any]:
    """Add the EIP712Domain type and turn numeric strings back into ints."""
    domain = typed_data["domain"]
    types = dict(typed_data["types"])
    types.setdefault(
        "EIP712Domain",
        [{"name": name, "type": kind} for name, kind in EIP712_DOMAIN_FIELDS if name in domain],
    )

    message = dict(typed_data["message"])
    for field in types[typed_data["primaryType"]]:
        value = message.get(field["name"])
        if field["type"].startswith("uint") and isinstance(value, str):
            message[field["name"]] = int(value, 0)

    return {**typed_data, "types": types, "message": message}
