"""
JWT token issuance, verification and refresh-token handling.

Tokens carry a discriminated payload: ``scope`` is either ``central`` (platform
users) or ``tenant`` (users of one organization, bound to ``tenant_slug``).
Refresh tokens travel as ``<jwt>.<opaque secret>``; only a hash of the opaque
half is ever stored, so the JWT half alone cannot be replayed.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Literal, Optional, Tuple, Union

from jose import jwt, JWTError
from jose.exceptions import ExpiredSignatureError
from pydantic import BaseModel, Field, ValidationError

from ..config import Settings
from .security import CredentialStore

# Set up logging
logger = logging.getLogger(__name__)

CENTRAL_SCOPE = "central"
TENANT_SCOPE = "tenant"


class TokenError(Exception):
    """Base class for token verification failures."""
    kind = "invalid"


class TokenExpiredError(TokenError):
    kind = "expired"


class TokenMalformedError(TokenError):
    kind = "malformed"


class TokenScopeError(TokenError):
    """Discriminant missing, unknown, or not the scope the caller needs."""
    kind = "wrong_scope"


class TokenMissingTenantError(TokenError):
    """Tenant-scope token without a tenant slug."""
    kind = "missing_tenant"


class RefreshTokenFormatError(TokenError):
    """Combined refresh token is not ``<header>.<payload>.<signature>.<secret>``."""
    kind = "refresh_format"


class CentralTokenPayload(BaseModel):
    scope: Literal["central"] = CENTRAL_SCOPE
    user_id: int
    email: str
    name: str


class TenantTokenPayload(BaseModel):
    scope: Literal["tenant"] = TENANT_SCOPE
    user_id: int
    email: str
    name: str
    tenant_slug: str = Field(..., min_length=1)


TokenPayload = Union[CentralTokenPayload, TenantTokenPayload]


def require_scope(payload: TokenPayload, scope: str, tenant_slug: Optional[str] = None) -> TokenPayload:
    """
    Check a verified payload against the scope of the request it arrived on.

    Args:
        payload: Verified token payload
        scope: Scope the endpoint serves
        tenant_slug: Slug of the request's tenant, for tenant-scope endpoints

    Returns:
        The same payload

    Raises:
        TokenScopeError: If the scope differs, or a tenant token names another tenant
    """
    if payload.scope != scope:
        raise TokenScopeError(f"Expected {scope} token, got {payload.scope}")
    if scope == TENANT_SCOPE and payload.tenant_slug != tenant_slug:
        raise TokenScopeError(f"Token for tenant {payload.tenant_slug!r} used on {tenant_slug!r}")
    return payload


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    # Opaque half alone, for the caller to hash and persist
    refresh_secret: str


class TokenService:
    """
    Issue and verify signed tokens.

    Access and refresh JWTs are signed with different keys, so a refresh JWT
    presented as a bearer token fails signature verification.
    """

    def __init__(self, settings: Settings, credentials: CredentialStore):
        self._access_secret = settings.jwt_access_secret
        self._refresh_secret = settings.jwt_refresh_secret
        self._algorithm = settings.jwt_algorithm
        self._issuer = settings.jwt_issuer
        self._audience = settings.jwt_audience
        self._access_ttl = timedelta(minutes=settings.access_token_expire_minutes)
        self._refresh_ttl = timedelta(days=settings.refresh_token_expire_days)
        self._credentials = credentials

    def _encode(self, payload: TokenPayload, secret: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        claims: Dict[str, Any] = payload.model_dump()
        claims.update({
            "iss": self._issuer,
            "aud": self._audience,
            "iat": now,
            "exp": now + ttl,
            "jti": uuid.uuid4().hex,
        })
        return jwt.encode(claims, secret, algorithm=self._algorithm)

    def issue_access_token(self, payload: TokenPayload) -> str:
        """
        Create a short-lived access token.

        Args:
            payload: Central or tenant payload

        Returns:
            str: Encoded JWT
        """
        return self._encode(payload, self._access_secret, self._access_ttl)

    def issue_refresh_token(self, payload: TokenPayload) -> Tuple[str, str]:
        """
        Create the two halves of a refresh token.

        Args:
            payload: Central or tenant payload

        Returns:
            Tuple of (signed JWT half, opaque secret half)
        """
        signed = self._encode(payload, self._refresh_secret, self._refresh_ttl)
        return signed, self._credentials.generate_refresh_secret()

    def issue_token_pair(self, payload: TokenPayload) -> TokenPair:
        access_token = self.issue_access_token(payload)
        signed, opaque = self.issue_refresh_token(payload)
        return TokenPair(
            access_token=access_token,
            refresh_token=f"{signed}.{opaque}",
            refresh_secret=opaque,
        )

    def verify_access_token(self, token: str) -> TokenPayload:
        """
        Verify an access token and return its typed payload.

        Raises:
            TokenExpiredError, TokenMalformedError, TokenScopeError,
            TokenMissingTenantError
        """
        return self._decode(token, self._access_secret)

    def verify_refresh_token(self, token: str) -> TokenPayload:
        """Verify the JWT half of a refresh token. Raises the same errors as access verification."""
        return self._decode(token, self._refresh_secret)

    def _decode(self, token: str, secret: str) -> TokenPayload:
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={"require_exp": True, "require_iss": True, "require_aud": True},
            )
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("Token has expired") from exc
        except JWTError as exc:
            raise TokenMalformedError(f"Invalid token: {exc}") from exc

        scope = claims.get("scope")
        if scope not in (CENTRAL_SCOPE, TENANT_SCOPE):
            raise TokenScopeError(f"Invalid token scope: {scope!r}")
        if scope == TENANT_SCOPE and not claims.get("tenant_slug"):
            raise TokenMissingTenantError("Tenant token missing tenant_slug")

        model = CentralTokenPayload if scope == CENTRAL_SCOPE else TenantTokenPayload
        try:
            return model.model_validate(claims)
        except ValidationError as exc:
            raise TokenMalformedError("Token payload is incomplete") from exc

    @staticmethod
    def split_refresh_token(combined: str) -> Tuple[str, str]:
        """
        Split ``<jwt>.<opaque>`` into its halves.

        Args:
            combined: Refresh token as handed to the client

        Returns:
            Tuple of (JWT half, opaque half)

        Raises:
            RefreshTokenFormatError: If the token does not have exactly three
                JWT segments followed by the opaque secret
        """
        if not combined:
            raise RefreshTokenFormatError("Refresh token is required")
        parts = combined.split(".")
        if len(parts) != 4 or not all(parts):
            raise RefreshTokenFormatError("Invalid refresh token format")
        return ".".join(parts[:3]), parts[3]

