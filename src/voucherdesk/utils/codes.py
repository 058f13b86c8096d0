"""Human-presentable instrument codes."""

import secrets

# No 0/O or 1/I/L so codes survive being read aloud or retyped.
CODE_ALPHABET = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"
CODE_LENGTH = 8


def generate_code(prefix: str, length: int = CODE_LENGTH) -> str:
    """Return a random code such as ``COMP-7F3K9Q2M``."""

    body = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix}-{body}" if prefix else body


def normalize_code(code: str) -> str:
    """Canonical form used for storage and lookups."""

    return code.strip().upper()
