import secrets

import bcrypt

from portal.core import config

BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    password_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage.
        return False


def generate_password(length: int = 8) -> str:
    return secrets.token_urlsafe(length)[:length]


def generate_otp(digits: int = 4) -> str:
    lower = 10 ** (digits - 1)
    return str(lower + secrets.randbelow(9 * lower))
