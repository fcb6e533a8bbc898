"""
Payload encryption for sysnap.

AES in CFB mode (128-bit feedback segments) with a fresh random IV per call.
The envelope is IV || ciphertext, URL-safe base64 encoded. Ciphertext length
equals plaintext length; there is no padding and no authentication tag.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

IV_SIZE = 16
KEY_SIZES = (16, 24, 32)


class EncryptionError(Exception):
    """Base class for payload encryption failures."""

    pass


class KeyFormatError(EncryptionError):
    """Raised when the key is not valid hexadecimal."""

    pass


class KeyLengthError(EncryptionError):
    """Raised when the decoded key is not 16, 24 or 32 bytes."""

    pass


class RandomSourceError(EncryptionError):
    """Raised when no secure random IV can be generated."""

    pass


class EnvelopeError(EncryptionError):
    """Raised when an encoded envelope cannot be decoded."""

    pass


def parse_key(key_hex: str) -> bytes:
    """
    Decode and validate a hexadecimal AES key.

    Raises:
        KeyFormatError: If `key_hex` is not hexadecimal.
        KeyLengthError: If the key is not 16, 24 or 32 bytes long.
    """
    try:
        key = binascii.unhexlify(key_hex.encode("ascii"))
    except (ValueError, AttributeError) as e:
        raise KeyFormatError(f"Encryption key is not valid hexadecimal: {e}") from e

    if len(key) not in KEY_SIZES:
        raise KeyLengthError(
            f"Invalid key length: {len(key)} bytes. Must be 16, 24 or 32 bytes"
        )
    return key


def generate_iv() -> bytes:
    """Return a fresh IV from the operating system's secure random source."""
    try:
        return os.urandom(IV_SIZE)
    except (OSError, NotImplementedError) as e:
        raise RandomSourceError(f"Could not generate IV: {e}") from e


def generate_key(size: int = 32) -> str:
    """Return a new random key as a hexadecimal string."""
    if size not in KEY_SIZES:
        raise KeyLengthError(f"Invalid key length: {size} bytes. Must be 16, 24 or 32 bytes")
    return os.urandom(size).hex()


def encrypt(plaintext: bytes, key_hex: str) -> str:
    """
    Encrypt a payload for transport.

    Args:
        plaintext: Bytes to encrypt.
        key_hex: AES key as a hexadecimal string.

    Returns:
        URL-safe base64 text of IV || ciphertext.

    Raises:
        KeyFormatError, KeyLengthError, RandomSourceError
    """
    logger.debug(f"Plaintext size: {len(plaintext)} bytes")
    key = parse_key(key_hex)
    logger.debug(f"Using AES-{len(key) * 8}")

    iv = generate_iv()
    encryptor = Cipher(algorithms.AES(key), modes.CFB(iv)).encryptor()
    ciphertext = encryptor.update(plaintext) + encryptor.finalize()

    encoded = base64.urlsafe_b64encode(iv + ciphertext).decode("ascii")
    logger.debug(f"Encoded payload size: {len(encoded)} characters")
    return encoded


def decrypt(encoded: str, key_hex: str) -> bytes:
    """
    Reverse `encrypt`: decode, split off the IV, and decrypt.

    Raises:
        EnvelopeError: If the envelope is not valid base64 or is too short.
        KeyFormatError, KeyLengthError
    """
    key = parse_key(key_hex)
    try:
        raw = base64.urlsafe_b64decode(encoded.encode("ascii"))
    except (ValueError, binascii.Error) as e:
        raise EnvelopeError(f"Payload is not valid URL-safe base64: {e}") from e

    if len(raw) < IV_SIZE:
        raise EnvelopeError(f"Payload too short: {len(raw)} bytes, need at least {IV_SIZE}")

    iv, ciphertext = raw[:IV_SIZE], raw[IV_SIZE:]
    decryptor = Cipher(algorithms.AES(key), modes.CFB(iv)).decryptor()
    return decryptor.update(ciphertext) + decryptor.finalize()
