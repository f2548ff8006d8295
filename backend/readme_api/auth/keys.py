"""
API key format, generation and hashing.

Security notes:
  • Keys look like readme_api_<32 hex chars> (128 bits of entropy from
    the `secrets` module). The prefix is a convention for recognising our
    keys — it is NOT a security property.
  • The store never sees a raw key: records are addressed by the SHA-256
    digest. SHA-256 is fine here because keys are high-entropy random
    strings, not passwords.
  • generate_api_key() returns the raw key exactly once — the caller
    must display it to the user immediately.
  • looks_like_api_key() is a SYNTAX check only. It is used to pick the
    rate-limit class and as the degraded-mode trust check; it never
    proves a key was issued.
"""

import hashlib
import hmac
import secrets

API_KEY_PREFIX = "readme_api_"

# A candidate must be strictly longer than this to pass the format check
MIN_KEY_LENGTH = 20

# How much of a raw key may appear in logs and listings
DISPLAY_PREFIX_LENGTH = 18


def hash_api_key(raw_key: str) -> str:
    """Hex SHA-256 digest used for storage and lookup."""
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def generate_api_key() -> str:
    random_part = secrets.token_hex(16)  # 32 hex chars = 128 bits
    return f"{API_KEY_PREFIX}{random_part}"


def looks_like_api_key(candidate: str | None) -> bool:
    return bool(candidate) and candidate.startswith(API_KEY_PREFIX) and len(candidate) > MIN_KEY_LENGTH


def display_prefix(raw_key: str) -> str:
    """Safe-to-log form of a key: the first few characters and an ellipsis."""
    return raw_key[:DISPLAY_PREFIX_LENGTH] + "…"


def secrets_match(provided: str, expected: str) -> bool:
    """Constant-time comparison for bearer secrets."""
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def extract_bearer(authorization: str | None) -> str | None:
    """Token from an `Authorization: Bearer <token>` header, else None."""
    if not authorization:
        return None
    parts = authorization.split(" ", maxsplit=1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()
