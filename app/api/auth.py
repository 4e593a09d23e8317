import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.dependencies import get_current_user
from app.core.exceptions import raise_for_domain_error
from app.core.privacy import get_privacy_protocol
from app.db.postgres import get_db
from app.db.models.user import User
from app.services.auth.schemas import (
    RegisterRequest,
    UserResponse,
    LoginRequest,
    TokenResponse,
    PromoteToAdminRequest,
    UpdateProfileRequest,
    ProfileCompletionResponse,
)
from app.services.auth.service import AuthService, calculate_profile_completion, serialize_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register_user(payload: RegisterRequest, db: Session = Depends(get_db)):
    service = AuthService(db)
    try:
        user = service.register_user(
            email=payload.email,
            username=payload.username,
            password=payload.password,
            full_name=payload.full_name,
            roles=payload.roles,
            language=payload.language,
        )
    except ValueError as e:
        raise_for_domain_error(e)
    return serialize_user(user)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    """Login endpoint - accepts POST requests with JSON body"""
    service = AuthService(db)
    result = service.authenticate_user(email=payload.email, password=payload.password)
    if result is None:
        logger.info("Authentication failed for %s", get_privacy_protocol().mask_email(payload.email))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    token, user = result
    return TokenResponse(access_token=token, roles=list(user.roles or []), is_admin=user.is_admin)


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Current profile; the frontend also uses it to verify the token is still valid."""
    return serialize_user(current_user)


@router.put("/profile", response_model=UserResponse)
def update_user_profile(
    payload: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Partial profile update. Skills are stored as canonical names, phone is encrypted."""
    service = AuthService(db)
    try:
        user = service.update_profile(current_user, payload)
    except ValueError as e:
        raise_for_domain_error(e)
    return serialize_user(user)


@router.get("/profile/completion", response_model=ProfileCompletionResponse)
def get_profile_completion(current_user: User = Depends(get_current_user)):
    return calculate_profile_completion(current_user)


@router.post("/promote-admin", response_model=UserResponse)
def promote_to_admin(payload: PromoteToAdminRequest, db: Session = Depends(get_db)):
    """Promote a user to admin. Requires ADMIN_SECRET_KEY."""
    settings = get_settings()
    if payload.admin_secret != settings.admin_secret_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin secret key",
        )
    service = AuthService(db)
    try:
        user = service.promote_to_admin(user_id=payload.user_id)
    except LookupError as e:
        raise_for_domain_error(e)
    return serialize_user(user)
