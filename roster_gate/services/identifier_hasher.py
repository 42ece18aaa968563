"""
Keyed hashing of military IDs.

The store key is ``HMAC-SHA256(secret, normalized_id)``. Military IDs have
at most 10,000,000 values, so a plain digest could be reversed by
enumeration; keying it with a server-side secret means a leaked table
cannot be enumerated offline without the secret as well.

Each record also carries a random ``salt`` and ``verifier =
SHA-256(id:salt)``. After the point read, the verifier is recomputed to
confirm the record was written for this identifier.
"""

import hashlib
import hmac
import re
import secrets

from roster_gate.services.errors import ValidationError

MIN_IDENTIFIER_DIGITS = 5
MAX_IDENTIFIER_DIGITS = 7

_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_identifier(identifier: str) -> str:
    """
    Strip non-digit characters and check the 5-7 digit length.

    Raises:
        ValidationError: If the input is missing or has the wrong length
    """
    if not identifier or not isinstance(identifier, str):
        raise ValidationError("Military ID is required and must be a string")

    digits = _NON_DIGITS.sub("", identifier)
    if not MIN_IDENTIFIER_DIGITS <= len(digits) <= MAX_IDENTIFIER_DIGITS:
        raise ValidationError(
            f"Military ID must be between {MIN_IDENTIFIER_DIGITS}-{MAX_IDENTIFIER_DIGITS} digits"
        )
    return digits


class IdentifierHasher:
    """Derives store keys and per-record verifiers from military IDs."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("Identifier hashing requires a secret")
        self._secret = secret.encode()

    def hash(self, identifier: str) -> str:
        """Deterministic lookup key for a normalized identifier."""
        return hmac.new(self._secret, identifier.encode(), hashlib.sha256).hexdigest()

    @staticmethod
    def make_salt() -> str:
        return secrets.token_hex(16)

    @staticmethod
    def verifier(identifier: str, salt: str) -> str:
        return hashlib.sha256(f"{identifier}:{salt}".encode()).hexdigest()

    def matches(self, identifier: str, salt: str, stored_verifier: str) -> bool:
        """Constant-time check of a record's verifier."""
        return hmac.compare_digest(self.verifier(identifier, salt), stored_verifier)
