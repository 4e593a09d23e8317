"""
AI API Endpoints
Manual (re-)run of the AI registration assessment
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_user
from app.core.exceptions import AIServiceError, AssessmentError, DOMAIN_ERRORS, handle_ai_error, raise_for_domain_error
from app.db.postgres import get_db
from app.db.models.user import User
from app.services.ai.assessment_service import RegistrationAssessmentService
from app.services.ai.groq_service import GroqLLMService, get_llm_service
from app.services.registrations.service import RegistrationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/assess-registration/{registration_id}")
def assess_registration(
    registration_id: int,
    current_user: User = Depends(get_current_user),
    llm: GroqLLMService = Depends(get_llm_service),
    db: Session = Depends(get_db),
):
    """Re-run the AI assessment of a registration (journey owner only)"""
    try:
        RegistrationService(db).get_for_owner(registration_id, current_user)
        result = RegistrationAssessmentService(db, llm).assess_registration(registration_id)
    except AIServiceError as e:
        raise handle_ai_error(e)
    except AssessmentError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)

    return {"success": True, "registration_id": registration_id, **result}
