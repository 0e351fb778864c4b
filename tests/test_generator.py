"""Tests for password generation and strength scoring."""
import string

import pytest

from offpass.exceptions import ValidationError
from offpass.generator import (
    SYMBOL_CHARS,
    check_password_strength,
    generate_password,
    strength_label,
)
from offpass.models import PasswordOptions

ONLY_UPPER = {"uppercase": True, "lowercase": False, "numbers": False, "symbols": False}
NONE = {"uppercase": False, "lowercase": False, "numbers": False, "symbols": False}


class TestGeneratePassword:
    """Tests for generate_password."""

    def test_default(self):
        password = generate_password()
        assert len(password) == 16
        allowed = set(string.ascii_letters + string.digits + SYMBOL_CHARS)
        assert set(password) <= allowed

    def test_uppercase_only(self):
        password = generate_password(16, ONLY_UPPER)
        assert len(password) == 16
        assert set(password) <= set(string.ascii_uppercase)

    def test_digits_only_with_model(self):
        options = PasswordOptions(uppercase=False, lowercase=False, symbols=False)
        password = generate_password(32, options)
        assert len(password) == 32
        assert password.isdigit()

    def test_no_charset(self):
        with pytest.raises(ValidationError):
            generate_password(16, NONE)

    def test_invalid_length(self):
        with pytest.raises(ValidationError):
            generate_password(0)

    def test_passwords_differ(self):
        assert len({generate_password(24) for _ in range(20)}) == 20


class TestPasswordStrength:
    """Tests for check_password_strength."""

    @pytest.mark.parametrize("password,score", [
        ("", 0),
        ("a", 1),
        ("abcdefgh", 2),
        ("Abcdefgh", 3),
        ("Abcdefgh1", 4),
        ("Aa1!aaaaaaaa", 4),
        ("aaaaaaaaaaaa", 3),
    ])
    def test_scores(self, password, score):
        assert check_password_strength(password) == score

    def test_ordering(self):
        assert check_password_strength("a") < check_password_strength("Aa1!aaaaaaaa")

    def test_range(self):
        for password in ("", "x", "Password123!", "ñ" * 30, generate_password(64)):
            assert 0 <= check_password_strength(password) <= 4

    def test_labels(self):
        assert strength_label(0) == "Very weak"
        assert strength_label(4) == "Strong"
        assert strength_label(9) == "Strong"
