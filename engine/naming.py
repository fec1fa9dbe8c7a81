"""Random resource names and passwords."""

import secrets
import string
from uuid import uuid4


def random_resource_name(prefix: str, max_length: int) -> str:
    """
    Generate a resource name from a prefix and a random suffix.

    The result is exactly max_length characters long. Uniqueness is left to
    the randomness of the suffix.

    Args:
        prefix: Fixed leading part of the name
        max_length: Total length of the generated name

    Returns:
        Generated name

    Raises:
        ValueError: If there is no room for a random suffix
    """
    if max_length <= len(prefix):
        raise ValueError(f"max_length {max_length} leaves no room after prefix {prefix!r}")

    suffix = ""
    while len(prefix) + len(suffix) < max_length:
        suffix += uuid4().hex

    return (prefix + suffix)[:max_length]


def create_password(length: int = 16) -> str:
    """Generate a password for the certificate export."""
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))
