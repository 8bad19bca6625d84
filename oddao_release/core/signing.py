from __future__ import annotations

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_keys.exceptions import ValidationError as KeyValidationError
from eth_utils import to_hex

from oddao_release.core.errors import InputValidationError


def load_account(private_key: str) -> LocalAccount:
    key = (private_key or "").strip()
    if not key:
        raise InputValidationError("key", "missing signer key")
    if not key.startswith(("0x", "0X")):
        key = "0x" + key
    try:
        return Account.from_key(key)
    except (ValueError, TypeError, KeyValidationError) as exc:
        raise InputValidationError("key", f"invalid private key ({exc.__class__.__name__})")


def sign_digest(digest: bytes, *, account: LocalAccount) -> str:
    # EIP-191 personal-message prefix, so a digest can never double as a raw tx signature.
    signed = account.sign_message(encode_defunct(primitive=digest))
    return to_hex(signed.signature)


def recover_signer(digest: bytes, signature_hex: str) -> str:
    """Checksum address that produced `signature_hex` over the prefixed digest."""
    return Account.recover_message(encode_defunct(primitive=digest), signature=signature_hex)
