# services/signature.py
"""Wallet signature verification (EIP-191 personal messages)."""
import re

import structlog
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.constants import SECPK1_N
from eth_keys.exceptions import BadSignature, ValidationError

from services.errors import MalformedInput, VerificationError

logger = structlog.get_logger(__name__)

ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")
SIGNATURE_RE = re.compile(r"(0x)?[0-9a-fA-F]{130}")

# Only the legacy recovery ids. eth-account would also read larger values as
# EIP-155 ids and recover the same signer from a different byte.
RECOVERY_IDS = (27, 28)


def parse_signature(signature: str) -> bytes:
    if not isinstance(signature, str) or not SIGNATURE_RE.fullmatch(signature):
        raise MalformedInput("signature must be 65 bytes of hex")
    return bytes.fromhex(signature[2:] if signature.startswith("0x") else signature)


def verify_signature(address: str, message: str, signature: str) -> bool:
    """Check that `signature` over `message` was produced by `address`.

    Scalars outside the curve order raise VerificationError. Any other
    well-formed signature that does not recover `address` is a plain False,
    including a non-canonical recovery id and an `r` with no curve point.
    """
    if not isinstance(address, str) or not ADDRESS_RE.fullmatch(address):
        raise MalformedInput("address must be 0x followed by 40 hex digits")
    if not isinstance(message, str):
        raise MalformedInput("message must be a string")
    raw = parse_signature(signature)

    r = int.from_bytes(raw[:32], "big")
    s = int.from_bytes(raw[32:64], "big")
    if not (0 < r < SECPK1_N and 0 < s < SECPK1_N):
        raise VerificationError("signature scalars out of range")
    if raw[64] not in RECOVERY_IDS:
        return False

    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=raw)
    except (BadSignature, ValidationError, ValueError) as e:
        logger.debug("Signature recovery failed", error=str(e))
        return False

    return recovered.lower() == address.lower()
