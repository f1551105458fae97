import hashlib
import secrets
from typing import Optional

PBKDF2_ITERATIONS = 200_000


def hash_pin(pin: str, salt: Optional[str] = None) -> tuple[str, str]:
    if not salt:
        salt = secrets.token_hex(16)
    dk = hashlib.pbkdf2_hmac(
        "sha256", pin.encode(), bytes.fromhex(salt), PBKDF2_ITERATIONS
    )
    return dk.hex(), salt


def verify_pin(pin: str, stored_hash: str, salt: str) -> bool:
    dk_hex, _ = hash_pin(pin, salt)
    return secrets.compare_digest(dk_hex, stored_hash)
