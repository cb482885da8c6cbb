"""
PKCE (Proof Key for Code Exchange) helpers for EVE SSO.

EVE SSO treats browser and desktop clients as public clients, so the
authorization code is bound to a one-time verifier:

1. Generate a random code_verifier
2. Send code_challenge = BASE64URL(SHA256(code_verifier)) with the authorize request
3. Send code_verifier with the token exchange
"""

import base64
import hashlib
import secrets
from typing import NamedTuple

VERIFIER_BYTES = 32
STATE_BYTES = 16


class PKCEPair(NamedTuple):
    """A code verifier and its S256 challenge."""

    verifier: str
    challenge: str


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def compute_challenge(verifier: str) -> str:
    """
    Derive the S256 code challenge for a verifier.

    Args:
        verifier: PKCE code verifier

    Returns:
        Unpadded base64url SHA-256 digest of the verifier
    """
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_pkce() -> PKCEPair:
    """Generate a fresh verifier/challenge pair from a CSPRNG."""
    verifier = _b64url(secrets.token_bytes(VERIFIER_BYTES))
    return PKCEPair(verifier=verifier, challenge=compute_challenge(verifier))


def generate_state() -> str:
    """Generate the anti-CSRF state nonce."""
    return _b64url(secrets.token_bytes(STATE_BYTES))
