"""
Password generation and hashing for seeded accounts.

Hashes use the format the DARE web application verifies at login:
``<scrypt hex>.<salt hex>`` with N=16384, r=8, p=1 and a 64-byte key,
where the salt is the hex string itself.
"""

import hashlib
import hmac
import secrets

UPPERCASE = "ABCDEFGHJKLMNPQRSTUVWXYZ"
LOWERCASE = "abcdefghijkmnopqrstuvwxyz"
DIGITS = "23456789"
SPECIAL = "@#$%&*"

SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_KEYLEN = 64


def generate_secure_password(length: int = 10) -> str:
    """Random password with at least one character from each class."""
    if length < 4:
        raise ValueError("Password length must be at least 4")

    alphabet = UPPERCASE + LOWERCASE + DIGITS + SPECIAL
    chars = [
        secrets.choice(UPPERCASE),
        secrets.choice(LOWERCASE),
        secrets.choice(DIGITS),
        secrets.choice(SPECIAL),
    ]
    chars.extend(secrets.choice(alphabet) for _ in range(length - 4))

    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def _scrypt(password: str, salt: str) -> str:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=SCRYPT_KEYLEN,
    ).hex()


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    return f"{_scrypt(password, salt)}.{salt}"


def verify_password(password: str, stored: str) -> bool:
    hashed, _, salt = stored.partition(".")
    if not hashed or not salt:
        return False
    return hmac.compare_digest(_scrypt(password, salt), hashed)
