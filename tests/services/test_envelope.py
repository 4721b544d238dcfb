"""Envelope modes: alphabet-swapped base64 and chunked RSA."""
from __future__ import annotations

import base64
import secrets

import pytest  # type: ignore[import-not-found]
from cryptography.hazmat.primitives.asymmetric import rsa

from cartbridge.services import envelope as envelope_mod
from cartbridge.services.envelope import ObfuscationEnvelope, RsaEnvelope, build_envelope, swap_letters
from cartbridge.errors import CryptoError


def test_obfuscation_is_base64_then_letter_swap():
    wire = ObfuscationEnvelope().encode({"a": 1})
    assert wire == swap_letters(base64.b64encode(b'{"a":1}').decode())
    assert swap_letters("Ab9") == "Zy0"


def test_obfuscation_decodes_text_with_spaces_for_plus():
    env = ObfuscationEnvelope()
    wire = env.encode_bytes(b"SELECT 1 >> 2 ??")
    assert env.decode_text(wire.replace("+", " ")) == "SELECT 1 >> 2 ??"


def test_obfuscation_rejects_garbage():
    with pytest.raises(CryptoError) as exc:
        ObfuscationEnvelope().decode("***")
    assert str(exc.value) == "ERROR_INVALID_BASE64_VALUE"


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def test_rsa_chunks_are_fixed_size_blocks(rsa_key):
    env = RsaEnvelope(rsa_key.public_key(), rsa_key)
    payload = {"rows": [{"id": i, "blob": secrets.token_hex(32)} for i in range(60)]}
    wire = env.encode(payload)
    assert len(wire) % (256 * 2) == 0
    assert len(wire) > 256 * 2
    assert env.decode(wire) == payload


def test_rsa_rejects_non_hex(rsa_key):
    env = RsaEnvelope(rsa_key.public_key(), rsa_key)
    with pytest.raises(CryptoError) as exc:
        env.decode("zz")
    assert str(exc.value) == "ERROR_INVALID_HEXDECIMAL_VALUE"


def test_build_envelope_defaults_to_obfuscation(monkeypatch):
    monkeypatch.delenv("BRIDGE_ENABLE_ENCRYPTION", raising=False)
    assert isinstance(build_envelope(), ObfuscationEnvelope)


def test_build_envelope_requires_public_key(monkeypatch):
    monkeypatch.setenv("BRIDGE_ENABLE_ENCRYPTION", "1")
    monkeypatch.delenv("BRIDGE_PUBLIC_KEY_PATH", raising=False)
    with pytest.raises(CryptoError):
        envelope_mod.build_envelope()


def test_rsa_rejects_ciphertext_sealed_for_another_key(rsa_key):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    wire = RsaEnvelope(other.public_key(), other).encode({"query": "SELECT 1"})
    with pytest.raises(CryptoError) as exc:
        RsaEnvelope(rsa_key.public_key(), rsa_key).decode(wire)
    assert str(exc.value) == "ERROR_DECRYPT"
