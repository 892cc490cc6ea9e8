from __future__ import annotations

import base64
import json

import base58
from solders.keypair import Keypair

from .errors import ConfigurationError


def load_keypair(secret: str) -> Keypair:
    """
    Accepts the two export formats wallets commonly hand out:
    1) base58 string of the 64-byte secret key (Phantom, Backpack)
    2) JSON byte array, e.g. [12, 34, ...] (solana-keygen id.json)
    """
    secret = secret.strip()
    try:
        if secret.startswith("[") and secret.endswith("]"):
            return Keypair.from_bytes(bytes(json.loads(secret)))
        return Keypair.from_bytes(base58.b58decode(secret))
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"PRIVATE_KEY is not a usable keypair: {e}")


def address_of(keypair: Keypair) -> str:
    return str(keypair.pubkey())


def encoded_address_of(keypair: Keypair) -> str:
    """Raw public key bytes, base64 encoded (the service's ``address_encoded``)."""
    return base64.b64encode(bytes(keypair.pubkey())).decode("ascii")


def sign_detached(keypair: Keypair, message: bytes) -> str:
    """ed25519 signature over ``message``, base64 encoded."""
    signature = keypair.sign_message(message)
    return base64.b64encode(bytes(signature)).decode("ascii")


def shorten(value: str, keep: int = 8) -> str:
    if len(value) <= keep * 2:
        return value
    return f"{value[:keep]}...{value[-keep:]}"
