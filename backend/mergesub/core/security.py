from __future__ import annotations
import secrets
import string

from mergesub.core.config import Settings

TOKEN_ALPHABET = string.ascii_letters + string.digits
TOKEN_LENGTH = 20


def generate_sub_token(length: int = TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def verify_credentials(settings: Settings, username: str, password: str) -> bool:
    if not settings.auth_enabled:
        return True
    user_ok = secrets.compare_digest(username.encode("utf-8"), settings.ADMIN_USERNAME.encode("utf-8"))
    pass_ok = secrets.compare_digest(password.encode("utf-8"), settings.ADMIN_PASSWORD.encode("utf-8"))
    return user_ok and pass_ok
