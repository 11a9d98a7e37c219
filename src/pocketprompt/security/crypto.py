"""Envelope encryption for prompt content.

Each call to :func:`encrypt_envelope` generates a fresh 256-bit content key
(CEK). The content is sealed with the CEK under AES-256-GCM, and the CEK is
wrapped with the master key, also under AES-256-GCM:

- ``iv``: 12-byte nonce for the content
- ``encryptedContent``: content ciphertext + 16-byte tag
- ``encryptedKey``: 12-byte wrap nonce || wrapped CEK + 16-byte tag (60 bytes)

Every binary field is base64 on the wire. Structural problems are reported
as ``CorruptEnvelopeError`` before any cipher is touched; authentication
failures are ``DecryptionError``.
"""
from __future__ import annotations

import base64
import binascii
import os
from typing import NamedTuple, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..core.exceptions import CorruptEnvelopeError, DecryptionError
from ..core.models import Envelope

NONCE_SIZE = 12  # 96-bit nonce
KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16
WRAPPED_KEY_SIZE = NONCE_SIZE + KEY_LENGTH + TAG_SIZE


class MasterKey:
    """Opaque handle around the derived master key.

    The raw bytes are consumed by the cipher and never kept on the handle,
    so there is nothing to export or persist.
    """

    __slots__ = ("_aead",)

    def __init__(self, key_bytes: bytes):
        if len(key_bytes) != KEY_LENGTH:
            raise ValueError(f"master key must be {KEY_LENGTH} bytes, got {len(key_bytes)}")
        self._aead = AESGCM(key_bytes)

    def __repr__(self):
        return "MasterKey(<redacted>)"


class DecodedEnvelope(NamedTuple):
    ciphertext: bytes
    wrap_nonce: bytes
    wrapped_key: bytes
    iv: bytes


def generate_cek() -> bytes:
    return AESGCM.generate_key(bit_length=KEY_LENGTH * 8)


def generate_nonce() -> bytes:
    return os.urandom(NONCE_SIZE)


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(value: str, field: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CorruptEnvelopeError(f"Envelope field {field!r} is not valid base64") from e


def wrap_cek(master_key: MasterKey, cek: bytes) -> bytes:
    """Encrypt a raw CEK with the master key; returns ``nonce || ciphertext``."""
    nonce = generate_nonce()
    return nonce + master_key._aead.encrypt(nonce, cek, None)


def unwrap_cek(master_key: MasterKey, blob: bytes) -> bytes:
    """Recover a CEK from ``nonce || ciphertext``.

    Raises ``DecryptionError`` when the master key does not authenticate the
    blob, i.e. a wrong password or tampered bytes.
    """
    if len(blob) != WRAPPED_KEY_SIZE:
        raise CorruptEnvelopeError(
            f"wrapped key must be {WRAPPED_KEY_SIZE} bytes, got {len(blob)}"
        )
    nonce, ct = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
    try:
        return master_key._aead.decrypt(nonce, ct, None)
    except InvalidTag as e:
        raise DecryptionError("Failed to unwrap content key (wrong password or tampered data)") from e


def decode_envelope(envelope: Envelope) -> DecodedEnvelope:
    """Decode and length-check every binary field of an envelope."""
    ciphertext = b64decode(envelope.encrypted_content, "encryptedContent")
    key_blob = b64decode(envelope.encrypted_key, "encryptedKey")
    iv = b64decode(envelope.iv, "iv")

    if len(iv) != NONCE_SIZE:
        raise CorruptEnvelopeError(f"iv must be {NONCE_SIZE} bytes, got {len(iv)}")
    if len(key_blob) != WRAPPED_KEY_SIZE:
        raise CorruptEnvelopeError(
            f"encryptedKey must be {WRAPPED_KEY_SIZE} bytes, got {len(key_blob)}"
        )
    if len(ciphertext) < TAG_SIZE:
        raise CorruptEnvelopeError("encryptedContent is too short to hold an authentication tag")

    return DecodedEnvelope(
        ciphertext=ciphertext,
        wrap_nonce=key_blob[:NONCE_SIZE],
        wrapped_key=key_blob[NONCE_SIZE:],
        iv=iv,
    )


def encrypt_envelope(content: str, master_key: MasterKey) -> Envelope:
    cek = generate_cek()
    iv = generate_nonce()
    ciphertext = AESGCM(cek).encrypt(iv, content.encode("utf-8"), None)
    wrapped = wrap_cek(master_key, cek)
    return Envelope(
        encrypted_content=b64encode(ciphertext),
        encrypted_key=b64encode(wrapped),
        iv=b64encode(iv),
    )


def decrypt_envelope(envelope: Union[Envelope, DecodedEnvelope], master_key: MasterKey) -> str:
    """Open an envelope (or an already decoded one) and return the plaintext."""
    decoded = envelope if isinstance(envelope, DecodedEnvelope) else decode_envelope(envelope)

    cek = unwrap_cek(master_key, decoded.wrap_nonce + decoded.wrapped_key)
    try:
        plaintext = AESGCM(cek).decrypt(decoded.iv, decoded.ciphertext, None)
    except InvalidTag as e:
        raise DecryptionError("Failed to decrypt content (tampered data)") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("Decrypted content is not valid UTF-8") from e
