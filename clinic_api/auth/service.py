"""
Authentication service layer for business logic.

The same flows serve both scopes; the caller passes the user store of the
scope the request belongs to (and, for tenant requests, the tenant slug).
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..core.audit import log_security_event
from ..core.security import CredentialStore
from ..core.timeouts import Deadline
from ..core.tokens import TokenError, TokenPayload, TokenService, require_scope
from .exceptions import (
    InvalidCredentialsException,
    InvalidTokenException,
    SelfVerificationException,
    UserAlreadyVerifiedException,
    UserNotFoundException,
)
from .repository import Account, CentralUserStore

# Set up logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str
    user: Dict[str, Any]


class AuthService:
    """Login, refresh, logout and central account management."""

    def __init__(
        self,
        tokens: TokenService,
        credentials: CredentialStore,
        request_timeout_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._tokens = tokens
        self._credentials = credentials
        self._request_timeout = request_timeout_seconds
        self._clock = clock
        self._central = CentralUserStore()

    def login(self, db: Session, store, email: str, password: str, tenant_slug: Optional[str] = None) -> SessionTokens:
        """
        Authenticate with email and password and start a session.

        Args:
            db: Session on the database holding the store's users
            store: CentralUserStore or TenantUserStore
            email: Login email
            password: Plain text password
            tenant_slug: Tenant of the request, for tenant logins

        Returns:
            SessionTokens: Access token, combined refresh token and user summary

        Raises:
            InvalidCredentialsException: Unknown email or wrong password
            UserNotVerifiedException: Central account not verified yet
        """
        account = store.get_by_email(db, email)
        if account is None:
            self._credentials.burn_password_check(password)
            log_security_event("LOGIN_FAILED", level=logging.WARNING, scope=store.scope,
                               tenant=tenant_slug, email=email, reason="unknown_email")
            raise InvalidCredentialsException()

        if not self._credentials.verify_password(password, account.password_hash):
            log_security_event("LOGIN_FAILED", level=logging.WARNING, scope=store.scope,
                               tenant=tenant_slug, user_id=account.id, reason="bad_password")
            raise InvalidCredentialsException()

        store.check_login_allowed(account)

        tokens = self._start_session(db, store, account, tenant_slug)
        log_security_event("LOGIN_SUCCESS", scope=store.scope, tenant=tenant_slug, user_id=account.id)
        return tokens

    def _start_session(self, db: Session, store, account: Account, tenant_slug: Optional[str]) -> SessionTokens:
        pair = self._tokens.issue_token_pair(store.build_payload(account, tenant_slug))
        store.set_refresh_hash(db, account.id, self._credentials.hash_refresh_secret(pair.refresh_secret))
        return SessionTokens(pair.access_token, pair.refresh_token, account.summary)

    def refresh(self, db: Session, store, refresh_token: str, tenant_slug: Optional[str] = None) -> SessionTokens:
        """
        Rotate a refresh token.

        The presented token stops working as soon as this call succeeds. When
        several calls present the same token concurrently, the conditional
        swap lets exactly one of them through.

        Raises:
            InvalidTokenException: Token malformed, expired, for another scope
                or tenant, already rotated, or revoked by logout
            OperationTimeoutError: The refresh ran past its deadline
        """
        deadline = Deadline(self._request_timeout, clock=self._clock)
        try:
            signed, opaque = self._tokens.split_refresh_token(refresh_token)
            payload = require_scope(self._tokens.verify_refresh_token(signed), store.scope, tenant_slug)
        except TokenError as exc:
            logger.debug(f"Refresh token rejected: {exc}")
            log_security_event("REFRESH_REJECTED", level=logging.WARNING, scope=store.scope,
                               tenant=tenant_slug, reason=exc.kind)
            raise InvalidTokenException() from exc

        account = store.get_by_id(db, payload.user_id)
        if account is None or not account.refresh_hash:
            log_security_event("REFRESH_REJECTED", level=logging.WARNING, scope=store.scope,
                               tenant=tenant_slug, user_id=payload.user_id, reason="no_live_token")
            raise InvalidTokenException()
        if not self._credentials.verify_refresh_secret(opaque, account.refresh_hash):
            log_security_event("REFRESH_REPLAY", level=logging.WARNING, scope=store.scope,
                               tenant=tenant_slug, user_id=account.id)
            raise InvalidTokenException()
        store.check_login_allowed(account)

        deadline.check("refresh")
        pair = self._tokens.issue_token_pair(store.build_payload(account, tenant_slug))
        new_hash = self._credentials.hash_refresh_secret(pair.refresh_secret)
        deadline.check("refresh")

        if not store.swap_refresh_hash(db, account.id, account.refresh_hash, new_hash):
            log_security_event("REFRESH_RACE_LOST", level=logging.WARNING, scope=store.scope,
                               tenant=tenant_slug, user_id=account.id)
            raise InvalidTokenException()

        log_security_event("TOKEN_REFRESHED", scope=store.scope, tenant=tenant_slug, user_id=account.id)
        return SessionTokens(pair.access_token, pair.refresh_token, account.summary)

    def logout(self, db: Session, store, principal: TokenPayload) -> None:
        """Revoke every outstanding refresh token of the principal."""
        store.clear_refresh_hash(db, principal.user_id)
        log_security_event("LOGOUT", scope=store.scope,
                           tenant=getattr(principal, "tenant_slug", None), user_id=principal.user_id)

    def me(self, db: Session, store, principal: TokenPayload) -> Dict[str, Any]:
        account = store.get_by_id(db, principal.user_id)
        if account is None:
            raise InvalidTokenException()
        return account.summary

    def register(self, db: Session, email: str, name: str, password: str, auto_verify: bool = False) -> Dict[str, Any]:
        """
        Register a central user.

        Returns:
            Dict: Summary of the new user

        Raises:
            EmailAlreadyExistsException: If email already exists
            NameAlreadyExistsException: If name already exists
        """
        logger.info(f"Central registration attempt for email: {email}")
        account = self._central.create_user(
            db, email, name, self._credentials.hash_password(password), is_verified=auto_verify
        )
        log_security_event("USER_REGISTERED", user_id=account.id, verified=auto_verify)
        return dict(account.summary, is_verified=account.is_verified)

    def verify_user(self, db: Session, verifier_id: int, user_id: int) -> Dict[str, Any]:
        """
        Mark another central user as verified.

        Raises:
            SelfVerificationException: If a user tries to verify themselves
            UserNotFoundException: If the user does not exist
            UserAlreadyVerifiedException: If the user is already verified
        """
        if verifier_id == user_id:
            log_security_event("VERIFY_REJECTED", level=logging.WARNING, verifier_id=verifier_id,
                               reason="self_verification")
            raise SelfVerificationException()
        account = self._central.get_by_id(db, user_id)
        if account is None:
            raise UserNotFoundException()
        if account.is_verified:
            raise UserAlreadyVerifiedException()

        self._central.mark_verified(db, user_id)
        log_security_event("USER_VERIFIED", user_id=user_id, verifier_id=verifier_id)
        return dict(account.summary, is_verified=True)
