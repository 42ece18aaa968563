"""
Tests for verification code generation and hashing.
"""

from collections import Counter

import pytest

from roster_gate.services.code_generator import (
    CodeGenerator,
    generate_code,
    generate_salt,
    hash_code,
    verify_code_hash
)


class TestGenerateCode:
    """Test cases for generate_code."""

    def test_codes_are_six_digits(self):
        """Every generated code is exactly 6 ASCII digits in range."""
        for _ in range(1000):
            code = generate_code()
            assert len(code) == 6
            assert code.isdigit()
            assert 0 <= int(code) <= 999999

    def test_codes_are_mostly_unique(self):
        codes = {generate_code() for _ in range(50)}
        assert len(codes) > 45

    def test_leading_digits_are_roughly_uniform(self):
        """Over 1000 codes each leading digit shows up about 100 times."""
        counts = Counter(generate_code()[0] for _ in range(1000))

        assert set(counts) == set("0123456789")
        assert counts["0"] > 0
        for digit, count in counts.items():
            assert 50 <= count <= 150, f"leading digit {digit} appeared {count} times"

    def test_custom_length_is_zero_padded(self, monkeypatch):
        monkeypatch.setattr("roster_gate.services.code_generator.secrets.randbelow", lambda n: 42)
        assert generate_code(4) == "0042"

    def test_generator_rejects_non_positive_length(self):
        with pytest.raises(ValueError):
            CodeGenerator(0)

    def test_generator_uses_configured_length(self):
        generator = CodeGenerator(8)
        assert generator.length == 8
        assert len(generator.generate()) == 8


class TestCodeHashing:
    """Test cases for salted code hashes."""

    def test_hash_matches_same_code(self):
        salt = generate_salt()
        stored = hash_code("123456", salt)
        assert verify_code_hash("123456", salt, stored) is True

    def test_hash_rejects_other_code(self):
        salt = generate_salt()
        stored = hash_code("123456", salt)
        assert verify_code_hash("654321", salt, stored) is False

    def test_salt_changes_digest(self):
        assert hash_code("123456", generate_salt()) != hash_code("123456", generate_salt())

    def test_digest_does_not_contain_code(self):
        assert "123456" not in hash_code("123456", "salt")
