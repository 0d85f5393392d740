"""Signing helpers for the WeChat Pay v2 XML API.

The gateway authenticates every message with a ``sign`` field computed as:

1. Drop the ``sign`` field and every field whose value is empty.
2. Sort the remaining parameters by name.
3. Join them as ``key=value`` pairs with ``&`` and append ``&key=<api key>``.
4. Hash the string with MD5, or with HMAC-SHA256 keyed by the API key.
5. Output the hex digest in uppercase.

Responses and asynchronous notifications are signed the same way, so these
helpers serve both directions.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import string

from pay_errors import SigningError

SIGN_TYPE_MD5 = "MD5"
SIGN_TYPE_HMAC_SHA256 = "HMAC-SHA256"
SIGN_TYPES = (SIGN_TYPE_MD5, SIGN_TYPE_HMAC_SHA256)

NONCE_LENGTH = 24
_NONCE_ALPHABET = string.ascii_letters + string.digits


def canonical_string(params: dict[str, str]) -> str:
    """Return the sorted ``key=value&...`` form of ``params`` without ``sign``."""

    filtered = {k: v for k, v in params.items() if k != "sign" and v != ""}
    return "&".join(f"{k}={v}" for k, v in sorted(filtered.items()))


def generate_sign(
    params: dict[str, str], key: str, sign_type: str = SIGN_TYPE_MD5
) -> str:
    """Return the uppercase hex signature of ``params``.

    Parameters
    ----------
    params:
        The fields to sign. ``sign`` and empty values are ignored.
    key:
        The merchant API key shared with the gateway.
    sign_type:
        ``"MD5"`` or ``"HMAC-SHA256"``.

    Raises
    ------
    SigningError
        If ``sign_type`` is not supported or the input cannot be encoded.
    """

    try:
        raw = f"{canonical_string(params)}&key={key}".encode("utf-8")
    except (TypeError, UnicodeEncodeError) as e:
        raise SigningError(f"cannot encode parameters for signing: {e}") from e

    if sign_type == SIGN_TYPE_MD5:
        digest = hashlib.md5(raw).hexdigest()
    elif sign_type == SIGN_TYPE_HMAC_SHA256:
        digest = hmac.new(key.encode("utf-8"), raw, hashlib.sha256).hexdigest()
    else:
        raise SigningError(f"unsupported sign type: {sign_type!r}")
    return digest.upper()


def signs_match(expected: str, actual: str) -> bool:
    return hmac.compare_digest(
        expected.upper().encode("utf-8"), actual.upper().encode("utf-8")
    )


def random_string(length: int = NONCE_LENGTH) -> str:
    return "".join(secrets.choice(_NONCE_ALPHABET) for _ in range(length))


__all__ = [
    "SIGN_TYPE_MD5",
    "SIGN_TYPE_HMAC_SHA256",
    "SIGN_TYPES",
    "NONCE_LENGTH",
    "canonical_string",
    "generate_sign",
    "signs_match",
    "random_string",
]
