import logging
import re
import secrets
import string
from typing import Any

from jose import JWTError, jwt

logger = logging.getLogger(__name__)

TOKEN_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")
GUEST_SUFFIX_ALPHABET = string.ascii_letters + string.digits


def is_token_shaped(token: str | None) -> bool:
    if not isinstance(token, str):
        return False
    parts = token.strip().split(".")
    if len(parts) != 3:
        return False
    return all(TOKEN_SEGMENT_PATTERN.match(part) for part in parts[:2])


def decode_token_claims(token: str | None) -> dict[str, Any] | None:
    # Unverified read: the signing key lives on the server only.
    if not is_token_shaped(token):
        return None
    try:
        claims = jwt.get_unverified_claims(token.strip())
    except JWTError as exc:
        logger.debug("stored token could not be decoded: %s", exc)
        return None
    if not isinstance(claims, dict):
        return None
    return claims


def username_from_token(token: str | None) -> str | None:
    claims = decode_token_claims(token)
    if not claims:
        return None
    username = claims.get("username")
    if not isinstance(username, str) or not username.strip():
        return None
    return username.strip()


def generate_guest_name(prefix: str = "Guest", suffix_length: int = 4) -> str:
    suffix = "".join(secrets.choice(GUEST_SUFFIX_ALPHABET) for _ in range(max(1, suffix_length)))
    return f"{prefix}{suffix}"
