"""Password generation and strength scoring."""
import re
import secrets
import string
from collections.abc import Mapping
from typing import Any, Union

from .exceptions import ValidationError
from .models import PasswordOptions

UPPERCASE_CHARS = string.ascii_uppercase
LOWERCASE_CHARS = string.ascii_lowercase
NUMBER_CHARS = string.digits
SYMBOL_CHARS = "!@#$%^&*()_-+=<>?"

STRENGTH_LABELS = ("Very weak", "Weak", "Fair", "Good", "Strong")

_UPPER_RE = re.compile(r"[A-Z]")
_LOWER_RE = re.compile(r"[a-z]")
_DIGIT_RE = re.compile(r"[0-9]")
_SYMBOL_RE = re.compile(r"[^A-Za-z0-9]")


def _charset(options: PasswordOptions) -> str:
    chars = ""
    if options.uppercase:
        chars += UPPERCASE_CHARS
    if options.lowercase:
        chars += LOWERCASE_CHARS
    if options.numbers:
        chars += NUMBER_CHARS
    if options.symbols:
        chars += SYMBOL_CHARS
    return chars


def generate_password(
    length: int = 16,
    options: Union[PasswordOptions, Mapping[str, Any], None] = None,
) -> str:
    """Generate a random password.

    One random byte is drawn per character and reduced modulo the size of
    the selected character set.

    Args:
        length: Number of characters.
        options: Character classes to draw from (all enabled by default).

    Raises:
        ValidationError: If no character class is selected or length < 1.
    """
    if options is None:
        options = PasswordOptions(length=length)
    elif not isinstance(options, PasswordOptions):
        options = PasswordOptions(**{**dict(options), "length": length})
    if length < 1:
        raise ValidationError("Password length must be at least 1")
    chars = _charset(options)
    if not chars:
        raise ValidationError("At least one character type must be selected")
    return "".join(chars[b % len(chars)] for b in secrets.token_bytes(length))


def check_password_strength(password: str) -> int:
    """Score a password from 0 (weak) to 4 (strong)."""
    score = 0
    if len(password) >= 8:
        score += 1
    if len(password) >= 12:
        score += 1
    for pattern in (_UPPER_RE, _LOWER_RE, _DIGIT_RE, _SYMBOL_RE):
        if pattern.search(password):
            score += 1
    return min(4, score)


def strength_label(score: int) -> str:
    return STRENGTH_LABELS[max(0, min(4, score))]
