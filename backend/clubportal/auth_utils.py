import hashlib
import os
import secrets

VERIFY_TOKEN_TTL_SECONDS = 24 * 60 * 60


def hash_password(password: str) -> str:
    salt = os.urandom(16)
    digest = hashlib.sha256(salt + password.encode()).hexdigest()
    return f"{salt.hex()}:{digest}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        salt_hex, stored_digest = hashed_password.split(":", 1)
    except ValueError:
        return False
    salt = bytes.fromhex(salt_hex)
    computed = hashlib.sha256(salt + plain_password.encode()).hexdigest()
    return secrets.compare_digest(computed, stored_digest)


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token: str, token_hash: str) -> bool:
    return secrets.compare_digest(hash_token(token), token_hash)
