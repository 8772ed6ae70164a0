"""
Core security utilities for password and refresh-secret hashing.
"""
import hashlib
import hmac
import logging
import secrets

from passlib.context import CryptContext

# Set up logging
logger = logging.getLogger(__name__)

# 256 bits of entropy for the opaque half of a refresh token
REFRESH_SECRET_BYTES = 32


class CredentialStore:
    """
    bcrypt hashing for passwords and for the opaque half of refresh tokens.

    Passwords are keyed with a server-wide pepper (HMAC-SHA256) before bcrypt,
    on top of the per-hash salt bcrypt already applies. The HMAC digest is 64
    hex characters, inside the 72 bytes bcrypt reads, so the pepper counts for
    passwords of any length. The pepper lives only in server configuration,
    so a leaked database alone does not yield crackable hashes.
    """

    def __init__(self, pepper: str = "", rounds: int = 12):
        self._pepper = pepper
        self._context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds
        )
        self._dummy_hash = None

    def _peppered(self, password: str) -> str:
        return hmac.new(self._pepper.encode("utf-8"), password.encode("utf-8"), hashlib.sha256).hexdigest()

    def hash_password(self, password: str) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            str: Hashed password
        """
        return self._context.hash(self._peppered(password))

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against a hash.

        Args:
            plain_password: Plain text password
            hashed_password: Hashed password to compare against

        Returns:
            bool: True if password matches hash
        """
        return self._context.verify(self._peppered(plain_password), hashed_password)

    def burn_password_check(self, plain_password: str) -> None:
        """Spend one verification on a dummy hash so unknown emails cost as much as wrong passwords."""
        if self._dummy_hash is None:
            self._dummy_hash = self._context.hash(secrets.token_hex(16))
        self._context.verify(self._peppered(plain_password), self._dummy_hash)

    def hash_refresh_secret(self, secret: str) -> str:
        return self._context.hash(secret)

    def verify_refresh_secret(self, secret: str, hashed_secret: str) -> bool:
        return self._context.verify(secret, hashed_secret)

    @staticmethod
    def generate_refresh_secret() -> str:
        """
        Generate the opaque half of a refresh token.

        Returns:
            str: 64 hex characters from a cryptographically secure source
        """
        return secrets.token_hex(REFRESH_SECRET_BYTES)
