from __future__ import annotations

import secrets
import string
from typing import Protocol

TOKEN_ALPHABET = string.ascii_letters + string.digits
DEFAULT_TOKEN_LENGTH = 16


class TokenGenerator(Protocol):
    def generate(self) -> str: ...


class SecretTokenGenerator:
    """Alphanumeric tokens drawn from the ``secrets`` CSPRNG."""

    def __init__(self, length: int = DEFAULT_TOKEN_LENGTH) -> None:
        if length < 8:
            raise ValueError("Token length must be at least 8 characters")
        self.length = length

    def generate(self) -> str:
        return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(self.length))
