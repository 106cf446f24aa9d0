"""
Deterministic storage naming.

The same logical name and salt always map to the same prefix, so a re-deploy
lands on the objects of the previous deploy and teardown can find them again.
"""
import hashlib

TOKEN_LENGTH = 8


def storage_token(logical_name: str, salt: str) -> str:
    """Short lowercase hex token derived from the name and the process salt."""
    digest = hashlib.md5(f"{logical_name}-{salt}".encode("utf-8")).hexdigest()
    return digest[:TOKEN_LENGTH]


def storage_prefix(logical_name: str, salt: str) -> str:
    return f"{logical_name}-{storage_token(logical_name, salt)}"
