"""RSA PKCS#1 v1.5 SHA-256 sign/verify over canonical content."""

import binascii
import logging
from functools import lru_cache
from typing import Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.serialization import (
    load_der_private_key,
    load_der_public_key,
    load_pem_private_key,
    load_pem_public_key,
)
from cryptography.hazmat.backends import default_backend

from paykernel.common.constants import DEFAULT_CHARSET
from paykernel.common.errors import KeyFormatError
from paykernel.common.utils import b64d, b64e


logger = logging.getLogger(__name__)

PrivateKeyLike = Union[str, bytes, rsa.RSAPrivateKey]
PublicKeyLike = Union[str, bytes, rsa.RSAPublicKey]

PEM_MARKER = b"-----BEGIN"


def _to_bytes(key: Union[str, bytes]) -> bytes:
    if isinstance(key, str):
        try:
            return key.strip().encode("ascii")
        except UnicodeEncodeError as e:
            raise KeyFormatError("Key material must be ASCII") from e
    return key.strip()


def _der_body(key_bytes: bytes) -> bytes:
    # Keys are commonly distributed as a bare base64 body without PEM armor
    return b64d(b"".join(key_bytes.split()))


@lru_cache(maxsize=32)
def _parse_private_key(key_bytes: bytes) -> rsa.RSAPrivateKey:
    try:
        if PEM_MARKER in key_bytes:
            key = load_pem_private_key(key_bytes, password=None, backend=default_backend())
        else:
            key = load_der_private_key(_der_body(key_bytes), password=None, backend=default_backend())
    except (ValueError, TypeError, binascii.Error) as e:
        raise KeyFormatError(f"Failed to parse private key: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyFormatError("Private key is not an RSA key")
    return key


@lru_cache(maxsize=32)
def _parse_public_key(key_bytes: bytes) -> rsa.RSAPublicKey:
    try:
        if PEM_MARKER in key_bytes:
            key = load_pem_public_key(key_bytes, backend=default_backend())
        else:
            key = load_der_public_key(_der_body(key_bytes), backend=default_backend())
    except (ValueError, TypeError, binascii.Error) as e:
        raise KeyFormatError(f"Failed to parse public key: {e}") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyFormatError("Public key is not an RSA key")
    return key


def load_private_key(key: PrivateKeyLike) -> rsa.RSAPrivateKey:
    """
    Parse an RSA private key.

    Args:
        key: PEM text/bytes, bare base64 PKCS#8 body, or a key object

    Returns:
        RSA private key object

    Raises:
        KeyFormatError: If the material is not a parsable RSA private key
    """
    if isinstance(key, rsa.RSAPrivateKey):
        return key
    if not key:
        raise KeyFormatError("Private key is empty")
    return _parse_private_key(_to_bytes(key))


def load_public_key(key: PublicKeyLike) -> rsa.RSAPublicKey:
    """
    Parse an RSA public key.

    Args:
        key: PEM text/bytes, bare base64 SubjectPublicKeyInfo body, or a key object

    Returns:
        RSA public key object

    Raises:
        KeyFormatError: If the material is not a parsable RSA public key
    """
    if isinstance(key, rsa.RSAPublicKey):
        return key
    if not key:
        raise KeyFormatError("Public key is empty")
    return _parse_public_key(_to_bytes(key))


def rsa_sign(private_key: rsa.RSAPrivateKey, message: bytes) -> bytes:
    """
    Sign a message using RSA with SHA-256 and PKCS#1 v1.5 padding.
    
    Args:
        private_key: RSA private key
        message: Message bytes to sign
        
    Returns:
        Signature bytes
    """
    return private_key.sign(
        message,
        padding.PKCS1v15(),
        hashes.SHA256()
    )


def rsa_verify(public_key: rsa.RSAPublicKey, message: bytes, signature: bytes) -> bool:
    """
    Verify an RSA signature using SHA-256 and PKCS#1 v1.5 padding.
    
    Returns:
        True if signature is valid, False otherwise
    """
    try:
        public_key.verify(
            signature,
            message,
            padding.PKCS1v15(),
            hashes.SHA256()
        )
        return True
    except Exception:
        return False


class Signer:
    """SHA256withRSA signer producing and checking base64 signatures."""

    def sign(self, content: str, private_key: PrivateKeyLike) -> str:
        """
        Sign UTF-8 encoded content.

        Args:
            content: Canonical sign content (may be empty)
            private_key: Merchant private key

        Returns:
            Standard base64 signature

        Raises:
            KeyFormatError: If the private key cannot be parsed
        """
        key = load_private_key(private_key)
        signature = rsa_sign(key, content.encode(DEFAULT_CHARSET))
        return b64e(signature)

    def verify(self, content: str, sign: str, public_key: PublicKeyLike) -> bool:
        """
        Check a base64 signature over UTF-8 encoded content.

        Returns False for a missing, non-base64 or non-matching signature.

        Raises:
            KeyFormatError: If the public key cannot be parsed
        """
        key = load_public_key(public_key)
        if content is None or not sign:
            return False
        try:
            signature = b64d(sign)
        except (binascii.Error, ValueError, TypeError):
            logger.warning("Signature is not valid base64")
            return False
        return rsa_verify(key, content.encode(DEFAULT_CHARSET), signature)
