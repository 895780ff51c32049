"""Client for the remote encrypt/decrypt function.

The cipher itself (AES-256-GCM) runs server-side; this module only speaks its
request/response contract. Content written by the first, browser-only release
used a repeating-key XOR scheme, which is still readable through
``legacy_decrypt``.
"""

from __future__ import annotations

import base64
import binascii
import logging
from http.client import HTTPException
from urllib.parse import unquote

from .errors import CryptoError
from .sync import http_client

logger = logging.getLogger(__name__)

CRYPTO_PATH = "crypto"
LEGACY_KEY_MIN_LEN = 256


def legacy_decrypt(encrypted_text: str, password: str) -> str | None:
    if not password:
        return None
    key = password
    while len(key) < LEGACY_KEY_MIN_LEN:
        key += password
    try:
        raw = base64.b64decode(encrypted_text, validate=True)
    except (binascii.Error, ValueError):
        return None
    chars = [chr(byte ^ ord(key[index % len(key)])) for index, byte in enumerate(raw)]
    try:
        # The legacy writer percent-encoded the text before XOR-ing it.
        decoded = unquote("".join(chars), encoding="utf-8", errors="strict")
    except UnicodeDecodeError:
        return None
    return decoded or None


class CryptoGateway:
    def __init__(self, base_url: str, *, timeout_s: float = 15.0) -> None:
        self._url = http_client.join_url(base_url, CRYPTO_PATH)
        self._timeout_s = timeout_s

    def _call(self, action: str, content: str, password: str) -> tuple[int, dict | None]:
        return http_client.request_json(
            "POST",
            self._url,
            body={"action": action, "content": content, "password": password},
            timeout_s=self._timeout_s,
        )

    def encrypt(self, plaintext: str, password: str) -> str:
        try:
            status, payload = self._call("encrypt", plaintext, password)
        except (OSError, HTTPException, ValueError) as exc:
            raise CryptoError("Failed to encrypt content") from exc
        encrypted = (payload or {}).get("encrypted")
        if status >= 400 or not (payload or {}).get("success") or not encrypted:
            logger.error("encryption failed: %s", (payload or {}).get("error"))
            raise CryptoError("Failed to encrypt content")
        return str(encrypted)

    def decrypt(self, ciphertext: str | None, password: str) -> str | None:
        """Return plaintext, or None when the input is blank or nothing can decrypt it."""
        if not ciphertext or not ciphertext.strip():
            logger.warning("cannot decrypt: content is empty")
            return None
        try:
            status, payload = self._call("decrypt", ciphertext, password)
        except (OSError, HTTPException, ValueError) as exc:
            logger.warning("server decryption error", exc_info=exc)
        else:
            decrypted = (payload or {}).get("decrypted")
            if status < 400 and (payload or {}).get("success") and decrypted is not None:
                return str(decrypted)
            logger.debug("server decryption rejected: %s", (payload or {}).get("error"))
        return legacy_decrypt(ciphertext, password)
