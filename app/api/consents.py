"""
Privacy API Endpoints
Consent management, consent audit trail and account deletion
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_user
from app.core.exceptions import DOMAIN_ERRORS, raise_for_domain_error
from app.db.postgres import get_db
from app.db.models.user import User
from app.services.consents.schemas import (
    AcceptLegalRequest,
    ConsentAuditEntry,
    ConsentStatusResponse,
    ConsentUpdateRequest,
    ConsentUpdateResponse,
    DeleteAccountRequest,
    DeleteAccountResponse,
)
from app.services.consents.service import ConsentService

router = APIRouter(prefix="/user", tags=["privacy"])


def _client_info(request: Request) -> tuple[str | None, str | None]:
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    return ip_address, request.headers.get("user-agent")


@router.get("/consents", response_model=ConsentStatusResponse)
def get_consents(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ConsentService(db).get_status(current_user)


@router.post("/consents/accept-legal", response_model=ConsentStatusResponse)
def accept_legal(
    payload: AcceptLegalRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ip_address, user_agent = _client_info(request)
    try:
        return ConsentService(db).accept_legal(current_user, payload, ip_address, user_agent)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.patch("/consents", response_model=ConsentUpdateResponse)
def update_consent(
    payload: ConsentUpdateRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Grant or revoke ai_processing, profile_sharing, marketing or set cookie preferences"""
    ip_address, user_agent = _client_info(request)
    try:
        consent = ConsentService(db).update_consent(
            current_user, payload.consent_type, payload.value, ip_address, user_agent
        )
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True, "consents": consent}


@router.get("/consents/audit", response_model=list[ConsentAuditEntry])
def get_consent_audit(
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ConsentService(db).get_audit_trail(current_user, limit)


@router.post("/delete-account", response_model=DeleteAccountResponse)
def delete_account(
    payload: DeleteAccountRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Permanently delete the account and all associated data (GDPR right to erasure)

    The body must contain confirmation = "DELETE MY ACCOUNT".
    """
    ip_address, user_agent = _client_info(request)
    try:
        deleted = ConsentService(db).delete_account(current_user, payload.confirmation, ip_address, user_agent)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True, "message": "Account and associated data deleted", "deleted": deleted}
