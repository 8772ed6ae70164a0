"""
Central-scope authentication routes.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..container import ServiceContainer, get_container
from ..core.tokens import CentralTokenPayload
from ..database import get_db
from .dependencies import require_central_principal
from .schemas import (
    CentralLoginResponse,
    CentralUserSummary,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
)

# Set up logging
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=CentralLoginResponse)
def login_route(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    """
    Central user login endpoint.

    Returns:
        CentralLoginResponse with access token, refresh token and user summary
    """
    session = container.auth_service.login(db, container.central_users, payload.email, payload.password)
    return CentralLoginResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        user=session.user,
    )


@router.post("/register", response_model=CentralUserSummary, status_code=status.HTTP_201_CREATED)
def register_route(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    """
    Register a central user. New users must be verified by another user
    before they can log in, unless auto-verification is enabled.
    """
    return container.auth_service.register(
        db,
        payload.email,
        payload.name,
        payload.password,
        auto_verify=container.settings.auto_verify_registrations,
    )


@router.post("/refresh", response_model=CentralLoginResponse)
def refresh_route(
    payload: RefreshRequest,
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    session = container.auth_service.refresh(db, container.central_users, payload.refresh_token)
    return CentralLoginResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        user=session.user,
    )


@router.post("/logout", response_model=MessageResponse)
def logout_route(
    principal: CentralTokenPayload = Depends(require_central_principal),
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    container.auth_service.logout(db, container.central_users, principal)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=CentralUserSummary)
def me_route(
    principal: CentralTokenPayload = Depends(require_central_principal),
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    return container.auth_service.me(db, container.central_users, principal)


@router.post("/users/{user_id}/verify", response_model=CentralUserSummary)
def verify_user_route(
    user_id: int,
    principal: CentralTokenPayload = Depends(require_central_principal),
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    """
    Verify another central user's account.

    Raises:
        SelfVerificationException (403), UserNotFoundException (404),
        UserAlreadyVerifiedException (409)
    """
    return container.auth_service.verify_user(db, principal.user_id, user_id)
