import secrets

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

SALT_BYTES = 16
HASH_ITERATIONS = 1000
HASH_LENGTH = 64


def _kdf(salt):
    return PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=HASH_LENGTH,
        salt=salt.encode('utf-8'),
        iterations=HASH_ITERATIONS
    )


def generate_salt():
    """Random per-user salt, hex encoded"""
    return secrets.token_hex(SALT_BYTES)


def hash_password(password, salt):
    """PBKDF2-SHA512 digest of password with salt, hex encoded"""
    return _kdf(salt).derive(password.encode('utf-8')).hex()


def verify_password(password, salt, stored_hash):
    """Check a plaintext password against a stored hash"""
    if not password or not salt or not stored_hash:
        return False
    try:
        _kdf(salt).verify(password.encode('utf-8'), bytes.fromhex(stored_hash))
    except (InvalidKey, ValueError):
        return False
    return True
