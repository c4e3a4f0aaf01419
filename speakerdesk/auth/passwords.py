"""PBKDF2-HMAC-SHA256 password hashing.

Hashes are stored as ``<salt hex>$<digest hex>``.
"""

import hashlib
import hmac
import os

ITERATIONS = 100_000


def hash_password(password: str) -> str:
    salt = os.urandom(16)
    digest = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt, ITERATIONS)
    return f"{salt.hex()}${digest.hex()}"


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password or '$' not in hashed_password:
        return False
    salt_hex, digest_hex = hashed_password.split('$', 1)
    try:
        salt = bytes.fromhex(salt_hex)
        stored_digest = bytes.fromhex(digest_hex)
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac('sha256', plain_password.encode('utf-8'), salt, ITERATIONS)
    return hmac.compare_digest(digest, stored_digest)
