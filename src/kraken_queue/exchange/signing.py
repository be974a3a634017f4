from __future__ import annotations

import base64
import binascii
import hmac
from collections.abc import Iterable, Mapping
from decimal import Decimal
from hashlib import sha256, sha512
from typing import Any
from urllib.parse import urlencode

from kraken_queue.errors import ConfigurationError


def _normalize_value(value: Any) -> str:
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def ordered_items(
    params: Mapping[str, Any] | Iterable[tuple[str, Any]],
) -> list[tuple[str, str]]:
    pairs = params.items() if isinstance(params, Mapping) else params
    items: list[tuple[str, str]] = []
    for key, value in pairs:
        if value is None:
            continue
        items.append((key, _normalize_value(value)))
    return items


def encode_params(params: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> str:
    # Insertion order is kept: the server hashes the body as sent.
    return urlencode(ordered_items(params))


def decode_secret(secret: str) -> bytes:
    if not secret:
        raise ConfigurationError("KRAKEN_API_SECRET is required for private endpoints")
    try:
        return base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"KRAKEN_API_SECRET is not valid base64: {e}") from e


def sign_message(path: str, post_data: str, nonce: int, secret: bytes) -> str:
    digest = sha256((str(nonce) + post_data).encode("utf-8")).digest()
    mac = hmac.new(secret, path.encode("utf-8") + digest, sha512)
    return base64.b64encode(mac.digest()).decode("ascii")


class Signer:
    def __init__(self, secret: str) -> None:
        self._secret = decode_secret(secret)

    def sign(
        self,
        path: str,
        params: Mapping[str, Any] | Iterable[tuple[str, Any]],
        nonce: int,
    ) -> str:
        return sign_message(path, encode_params(params), nonce, self._secret)
