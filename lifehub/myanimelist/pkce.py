"""
PKCE (RFC 7636) helpers.

Only the S256 challenge method is supported.
"""

import secrets

from authlib.oauth2.rfc7636 import create_s256_code_challenge

CODE_CHALLENGE_METHOD = "S256"
VERIFIER_ENTROPY_BYTES = 64


def generate_code_verifier() -> str:
    """64 random bytes, base64url without padding (86 characters)."""
    return secrets.token_urlsafe(VERIFIER_ENTROPY_BYTES)


def code_challenge(code_verifier: str) -> str:
    """base64url(sha256(verifier)) without padding."""
    return create_s256_code_challenge(code_verifier)
