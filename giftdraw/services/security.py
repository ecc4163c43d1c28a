from __future__ import annotations

import secrets

from loguru import logger
from passlib.context import CryptContext

from giftdraw.db import repo

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)

DEFAULT_PASSWORD_MIN_LENGTH = 4


class AdminAuthError(RuntimeError):
    pass


def generate_session_id() -> str:
    return "session_" + secrets.token_urlsafe(9).replace("-", "x").replace("_", "y")


def generate_admin_key() -> str:
    return secrets.token_urlsafe(12)


def keys_match(expected: str, provided: str) -> bool:
    return secrets.compare_digest(expected.encode(), provided.encode())


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, stored_hash: str) -> bool:
    return pwd_context.verify(password, stored_hash)


def is_admin_configured(session) -> bool:
    return repo.get_admin_credential(session) is not None


def setup_admin_password(
    session,
    password: str,
    confirmation: str,
    min_length: int = DEFAULT_PASSWORD_MIN_LENGTH,
) -> None:
    """Store the first admin password. Refuses to overwrite an existing one."""
    if is_admin_configured(session):
        raise AdminAuthError("The admin password is already set.")
    if not password or len(password) < min_length:
        raise AdminAuthError(f"The password must be at least {min_length} characters long.")
    if password != confirmation:
        raise AdminAuthError("The passwords do not match.")
    repo.save_admin_credential(session, hash_password(password))
    logger.info("Admin password configured")


def verify_admin_password(session, password: str) -> bool:
    credential = repo.get_admin_credential(session)
    if credential is None or not password:
        return False
    valid = verify_password(password, credential.password_hash)
    if not valid:
        logger.warning("Rejected admin login attempt")
    return valid
