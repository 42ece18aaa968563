"""
Verification code generation and hashing.

Codes come from the ``secrets`` CSPRNG and are stored only as salted
SHA-256 digests.
"""

import hashlib
import hmac
import secrets


def generate_code(length: int = 6) -> str:
    """
    Generate a numeric code uniformly distributed over ``0..10**length - 1``.

    Args:
        length: Number of digits

    Returns:
        Left-zero-padded numeric string
    """
    return str(secrets.randbelow(10 ** length)).zfill(length)


def generate_salt() -> str:
    """Generate a random salt for code hashing."""
    return secrets.token_hex(16)


def hash_code(code: str, salt: str) -> str:
    """Hash a verification code with its salt."""
    return hashlib.sha256(f"{salt}:{code}".encode()).hexdigest()


def verify_code_hash(code: str, salt: str, stored_hash: str) -> bool:
    """Compare a submitted code against a stored digest in constant time."""
    return hmac.compare_digest(hash_code(code, salt), stored_hash)


class CodeGenerator:
    """Produces fixed-length numeric verification codes."""

    def __init__(self, length: int = 6):
        if length < 1:
            raise ValueError("Code length must be positive")
        self.length = length

    def generate(self) -> str:
        return generate_code(self.length)
