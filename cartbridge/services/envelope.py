"""Request/response envelope.

Two interchangeable modes wrap every bridge payload:

* ``ObfuscationEnvelope`` (no crypto backend): base64 text run through a
  fixed alphabet permutation.
* ``RsaEnvelope``: JSON -> zlib -> RSA-OAEP over fixed-size chunks -> hex.
  Chunk size is the key's maximum OAEP payload (key bytes minus 42 bytes of
  SHA-1 padding overhead); ciphertext blocks are 256 bytes for the 2048-bit
  deployment key.

A deployment picks one mode (``build_envelope``) and uses it for both
directions.
"""
from __future__ import annotations

import base64
import binascii
import datetime
import decimal
import json
import zlib
from types import SimpleNamespace
from typing import Any, List, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from cartbridge import config as app_config
from cartbridge.errors import CryptoError
from cartbridge.utils.logging import get_logger

LOG = get_logger("envelope")

_DEFAULT_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_CUSTOM_ALPHABET = "ZYXWVUTSRQPONMLKJIHGFEDCBAzyxwvutsrqponmlkjihgfedcba9876543210+/"
_SWAP = str.maketrans(_DEFAULT_ALPHABET, _CUSTOM_ALPHABET)
_UNSWAP = str.maketrans(_CUSTOM_ALPHABET, _DEFAULT_ALPHABET)

OAEP_OVERHEAD = 42
CIPHER_BLOCK_SIZE = 256


def swap_letters(value: str) -> str:
    return value.translate(_SWAP)


def unswap_letters(value: str) -> str:
    return value.translate(_UNSWAP)


def _json_default(value: Any) -> Any:
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat(sep=" ") if isinstance(value, datetime.datetime) else value.isoformat()
    if isinstance(value, datetime.timedelta):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, SimpleNamespace):
        return vars(value)
    if isinstance(value, set):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize(value: Any) -> bytes:
    """JSON wire form of a structured value (compact, UTF-8)."""
    return json.dumps(value, default=_json_default, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class Envelope:
    """Reversible transform between structured values and wire strings."""

    mode = "base"

    def encode_bytes(self, data: bytes) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    def decode_bytes(self, wire: str) -> bytes:  # pragma: no cover - interface
        raise NotImplementedError

    def encode(self, value: Any) -> str:
        return self.encode_bytes(serialize(value))

    def decode(self, wire: str) -> Any:
        raw = self.decode_bytes(wire)
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CryptoError("ERROR_INVALID_PAYLOAD") from exc

    def decode_text(self, wire: str) -> str:
        """Decode a payload carrying plain text (SQL statements)."""
        try:
            return self.decode_bytes(wire).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CryptoError("ERROR_INVALID_PAYLOAD") from exc


class ObfuscationEnvelope(Envelope):
    """Base64 + alphabet permutation; confidentiality is not a goal here."""

    mode = "obfuscation"

    def encode_bytes(self, data: bytes) -> str:
        return swap_letters(base64.b64encode(data).decode("ascii"))

    def decode_bytes(self, wire: str) -> bytes:
        if not isinstance(wire, str):
            raise CryptoError("ERROR_INVALID_PAYLOAD")
        # Form transport may turn '+' into spaces.
        candidate = unswap_letters(wire.strip().replace(" ", "+"))
        try:
            return base64.b64decode(candidate, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CryptoError("ERROR_INVALID_BASE64_VALUE") from exc


class RsaEnvelope(Envelope):
    """Chunked RSA-OAEP envelope over a zlib-compressed payload.

    Outbound chunks are encrypted with the platform's public key. Inbound
    blocks are OAEP-decrypted when a private key is configured; with only a
    public key they are recovered as PKCS#1 v1.5 signatures, which is how
    the platform seals requests with its private key.
    """

    mode = "rsa"

    def __init__(
        self,
        public_key: rsa.RSAPublicKey,
        private_key: Optional[rsa.RSAPrivateKey] = None,
        *,
        block_size: int = CIPHER_BLOCK_SIZE,
    ) -> None:
        self.public_key = public_key
        self.private_key = private_key
        self.block_size = block_size

    @property
    def chunk_size(self) -> int:
        return self.public_key.key_size // 8 - OAEP_OVERHEAD

    @staticmethod
    def _oaep() -> padding.OAEP:
        return padding.OAEP(mgf=padding.MGF1(algorithm=hashes.SHA1()), algorithm=hashes.SHA1(), label=None)

    def encode_bytes(self, data: bytes) -> str:
        compressed = zlib.compress(data)
        size = self.chunk_size
        parts: List[bytes] = []
        for start in range(0, len(compressed), size):
            chunk = compressed[start:start + size]
            try:
                parts.append(self.public_key.encrypt(chunk, self._oaep()))
            except ValueError as exc:
                raise CryptoError("ERROR_ENCRYPT") from exc
        return b"".join(parts).hex()

    def decode_bytes(self, wire: str) -> bytes:
        try:
            raw = bytes.fromhex(wire.strip()) if isinstance(wire, str) else b""
        except ValueError as exc:
            raise CryptoError("ERROR_INVALID_HEXDECIMAL_VALUE") from exc
        if not raw:
            raise CryptoError("ERROR_INVALID_HEXDECIMAL_VALUE")
        plain: List[bytes] = []
        for start in range(0, len(raw), self.block_size):
            plain.append(self._open_block(raw[start:start + self.block_size]))
        try:
            return zlib.decompress(b"".join(plain))
        except zlib.error as exc:
            raise CryptoError("ERROR_DECRYPT") from exc

    def _open_block(self, block: bytes) -> bytes:
        try:
            if self.private_key is not None:
                return self.private_key.decrypt(block, self._oaep())
            return self.public_key.recover_data_from_signature(block, padding.PKCS1v15(), None)
        except (ValueError, InvalidSignature) as exc:
            raise CryptoError("ERROR_DECRYPT") from exc


def _read_file(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


def load_public_key(pem: bytes) -> rsa.RSAPublicKey:
    try:
        key = serialization.load_pem_public_key(pem)
    except ValueError as exc:
        raise CryptoError("ERROR_INVALID_PUBLIC_KEY") from exc
    if not isinstance(key, rsa.RSAPublicKey):
        raise CryptoError("ERROR_INVALID_PUBLIC_KEY")
    return key


def load_private_key(pem: bytes) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError) as exc:
        raise CryptoError("ERROR_INVALID_PRIVATE_KEY") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise CryptoError("ERROR_INVALID_PRIVATE_KEY")
    return key


def build_envelope() -> Envelope:
    """Envelope for this deployment, chosen once from configuration."""
    if not app_config.encryption_enabled():
        return ObfuscationEnvelope()
    public_path = app_config.public_key_path()
    if not public_path:
        raise CryptoError("ERROR_PUBLIC_KEY_NOT_CONFIGURED")
    public_key = load_public_key(_read_file(public_path))
    private_key = None
    private_path = app_config.private_key_path()
    if private_path:
        private_key = load_private_key(_read_file(private_path))
    LOG.debug("RSA envelope ready key_size=%s private=%s", public_key.key_size, private_key is not None)
    return RsaEnvelope(public_key, private_key)


__all__ = [
    "Envelope",
    "ObfuscationEnvelope",
    "RsaEnvelope",
    "swap_letters",
    "unswap_letters",
    "serialize",
    "load_public_key",
    "load_private_key",
    "build_envelope",
]
