import hashlib
import secrets
import string

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_TEMP_PASSWORD_ALPHABET = string.ascii_lowercase + string.digits
_TEMP_PASSWORD_SYMBOLS = "!@#$%*?"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_invite_token() -> str:
    return secrets.token_urlsafe(32)


def generate_temp_password() -> str:
    chars = [secrets.choice(_TEMP_PASSWORD_ALPHABET) for _ in range(12)]
    chars += [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.digits),
        secrets.choice(_TEMP_PASSWORD_SYMBOLS),
    ]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)
