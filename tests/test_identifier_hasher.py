"""
Tests for military ID normalization and keyed hashing.
"""

import pytest

from roster_gate.services.errors import ValidationError
from roster_gate.services.identifier_hasher import IdentifierHasher, normalize_identifier

from conftest import TEST_HASH_SECRET


class TestNormalizeIdentifier:
    """Test cases for normalize_identifier."""

    @pytest.mark.parametrize("raw,expected", [
        ("1234567", "1234567"),
        ("12345", "12345"),
        ("12-345-67", "1234567"),
        (" 123 456 ", "123456"),
    ])
    def test_valid_identifiers(self, raw, expected):
        assert normalize_identifier(raw) == expected

    @pytest.mark.parametrize("raw", ["1234", "12345678", "abcd", "12a3"])
    def test_wrong_length_rejected(self, raw):
        with pytest.raises(ValidationError) as exc_info:
            normalize_identifier(raw)
        assert "5-7 digits" in exc_info.value.detail

    @pytest.mark.parametrize("raw", ["", None, 1234567])
    def test_missing_identifier_rejected(self, raw):
        with pytest.raises(ValidationError) as exc_info:
            normalize_identifier(raw)
        assert exc_info.value.detail == "Military ID is required and must be a string"


class TestIdentifierHasher:
    """Test cases for IdentifierHasher."""

    @pytest.fixture
    def hasher(self):
        return IdentifierHasher(TEST_HASH_SECRET)

    def test_hash_is_deterministic(self, hasher):
        assert hasher.hash("1234567") == hasher.hash("1234567")
        assert len(hasher.hash("1234567")) == 64

    def test_hash_depends_on_secret(self, hasher):
        other = IdentifierHasher("another-secret-of-enough-length")
        assert hasher.hash("1234567") != other.hash("1234567")

    def test_hash_differs_per_identifier(self, hasher):
        assert hasher.hash("1234567") != hasher.hash("7654321")

    def test_verifier_roundtrip(self, hasher):
        salt = hasher.make_salt()
        verifier = hasher.verifier("1234567", salt)

        assert hasher.matches("1234567", salt, verifier) is True
        assert hasher.matches("7654321", salt, verifier) is False

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            IdentifierHasher("")
