import base64
import hashlib
from typing import Optional, Tuple

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes
from Crypto.Util.Padding import pad, unpad

SALTED_MAGIC = b"Salted__"
SALT_SIZE = 8
KEY_SIZE = 32
IV_SIZE = AES.block_size


def evp_bytes_to_key(password: bytes, salt: bytes, key_len: int = KEY_SIZE, iv_len: int = IV_SIZE) -> Tuple[bytes, bytes]:
    """
    OpenSSL EVP_BytesToKey with MD5 and a single iteration.

    Chains md5(previous_block + password + salt) until key_len + iv_len bytes are available.
    """
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + password + salt).digest()
        derived += block
    return derived[:key_len], derived[key_len : key_len + iv_len]


def decrypt_salted(encrypted_b64: str, secret: str) -> str:
    """
    Decrypt an OpenSSL-compatible ``Salted__`` base64 blob encrypted with AES-256-CBC.

    Raises:
        ValueError: If the blob is not valid base64, lacks the salted marker or has bad padding.
    """
    encrypted = base64.b64decode(encrypted_b64, validate=False)
    if len(encrypted) <= len(SALTED_MAGIC) + SALT_SIZE or encrypted[: len(SALTED_MAGIC)] != SALTED_MAGIC:
        raise ValueError("Invalid OpenSSL format")

    salt = encrypted[len(SALTED_MAGIC) : len(SALTED_MAGIC) + SALT_SIZE]
    body = encrypted[len(SALTED_MAGIC) + SALT_SIZE :]
    if len(body) % AES.block_size:
        raise ValueError("Ciphertext is not a multiple of the block size")

    key, iv = evp_bytes_to_key(secret.encode("utf-8"), salt)
    cipher = AES.new(key, AES.MODE_CBC, iv)
    return unpad(cipher.decrypt(body), AES.block_size).decode("utf-8")


def encrypt_salted(plaintext: str, secret: str, salt: Optional[bytes] = None) -> str:
    """Inverse of :func:`decrypt_salted`; a random salt is used unless one is given."""
    salt = salt or get_random_bytes(SALT_SIZE)
    if len(salt) != SALT_SIZE:
        raise ValueError(f"Salt must be {SALT_SIZE} bytes")

    key, iv = evp_bytes_to_key(secret.encode("utf-8"), salt)
    cipher = AES.new(key, AES.MODE_CBC, iv)
    encrypted = cipher.encrypt(pad(plaintext.encode("utf-8"), AES.block_size))
    return base64.b64encode(SALTED_MAGIC + salt + encrypted).decode("ascii")


def nonce_key_and_iv(secret: str, nonce: str) -> Tuple[bytes, bytes]:
    """Key is sha256(secret); IV is the first 16 bytes of the raw nonce text."""
    iv = nonce.encode("utf-8")[:IV_SIZE]
    if len(iv) != IV_SIZE:
        raise ValueError(f"Nonce must provide at least {IV_SIZE} bytes of IV")
    return hashlib.sha256(secret.encode("utf-8")).digest(), iv


def decrypt_with_nonce(encrypted_b64: str, secret: str, nonce: str) -> str:
    """
    Decrypt an unframed base64 AES-256-CBC blob using a nonce-derived IV.

    Raises:
        ValueError: On bad base64, a short nonce, bad block alignment or bad padding.
    """
    encrypted = base64.b64decode(encrypted_b64, validate=False)
    if not encrypted or len(encrypted) % AES.block_size:
        raise ValueError("Ciphertext is not a multiple of the block size")

    key, iv = nonce_key_and_iv(secret, nonce)
    cipher = AES.new(key, AES.MODE_CBC, iv)
    return unpad(cipher.decrypt(encrypted), AES.block_size).decode("utf-8")


def encrypt_with_nonce(plaintext: str, secret: str, nonce: str) -> str:
    """Inverse of :func:`decrypt_with_nonce`."""
    key, iv = nonce_key_and_iv(secret, nonce)
    cipher = AES.new(key, AES.MODE_CBC, iv)
    return base64.b64encode(cipher.encrypt(pad(plaintext.encode("utf-8"), AES.block_size))).decode("ascii")
