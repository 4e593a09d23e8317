"""
Onboarding Assistant
Role-aware chat that helps crew and owners complete their profiles, plus
structured extraction of profile fields from a conversation
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import AIServiceError, NotFoundError
from app.db.models.assistant import AIConversation, AIMessage
from app.db.models.user import EXPERIENCE_LEVEL_NAMES, RiskLevel, User, UserRole
from app.services.ai.groq_service import PROVIDER, GroqLLMService, parse_json_response
from app.services.auth.schemas import UpdateProfileRequest
from app.services.auth.service import AuthService, calculate_profile_completion
from app.services.consents.service import has_ai_processing_consent
from app.services.matching.skill_matching import normalize_skill_names, to_display_skill_name

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20
TITLE_LENGTH = 60

TEXT_FIELDS = ("full_name", "user_description", "certifications", "sailing_preferences")

ROLE_FOCUS = {
    UserRole.CREW: (
        "You help a crew member describe their sailing background: experience level, "
        "skills, certifications, comfort with coastal/offshore/extreme sailing and what "
        "kind of journeys they are looking for."
    ),
    UserRole.OWNER: (
        "You help a boat owner present themselves and plan their first journey: their "
        "sailing experience, their boat (make/model, home port) and the journeys they "
        "intend to sail, including dates and the crew skills they need."
    ),
}


def _profile_block(user: User) -> str:
    skills = [to_display_skill_name(s) for s in normalize_skill_names(user.skills)]
    level = EXPERIENCE_LEVEL_NAMES.get(user.sailing_experience) if user.sailing_experience else None
    return "\n".join(
        [
            f"- Name: {user.full_name or 'Not provided'}",
            f"- Experience Level: {level or 'Not specified'}",
            f"- Skills: {', '.join(skills) if skills else 'None listed'}",
            f"- Risk Levels: {', '.join(user.risk_level) if user.risk_level else 'Not specified'}",
            f"- Certifications: {user.certifications or 'Not provided'}",
            f"- Sailing Preferences: {user.sailing_preferences or 'Not specified'}",
            f"- About: {user.user_description or 'Not provided'}",
        ]
    )


def build_system_prompt(user: User) -> Tuple[str, List[str]]:
    """System prompt for the chat and the labels of the still-missing profile fields"""
    role = UserRole.OWNER if user.has_role(UserRole.OWNER) and not user.has_role(UserRole.CREW) else UserRole.CREW
    missing = [field["label"] for field in calculate_profile_completion(user)["missing_fields"]]
    levels = ", ".join(f"{k}={v}" for k, v in EXPERIENCE_LEVEL_NAMES.items())
    language = "Finnish" if user.language == "fi" else "English"

    prompt = f"""
[ROLE]
You are the SailMatch onboarding assistant, a friendly sailing expert.
{ROLE_FOCUS[role]}

[CURRENT PROFILE]
{_profile_block(user)}

[MISSING PROFILE FIELDS]
{chr(10).join(f'- {label}' for label in missing) if missing else '- None, the profile is complete'}

[RULES]
- Be warm and conversational, not form-like. Ask 1-2 questions per message.
- Prioritise the missing fields above.
- Experience levels: {levels}. Risk levels: {', '.join(r.value for r in RiskLevel)}.
- Never ask for passwords, email addresses or payment details.
- Keep replies concise (2-4 sentences) and answer in {language}.
"""
    return prompt, missing


def build_extraction_prompt(messages: List[AIMessage]) -> str:
    transcript = "\n".join(
        f"{'User' if m.role == 'user' else 'Assistant'}: {m.content}" for m in messages if m.role in ("user", "assistant")
    )
    levels = ", ".join(f"{k}={v}" for k, v in EXPERIENCE_LEVEL_NAMES.items())
    return f"""
[TASK]
Extract the user's sailing profile from the conversation below. Only use facts the
user stated about themselves.

[CONVERSATION]
{transcript}

[OUTPUT CONTRACT]
Return JSON exactly (null for anything not mentioned):
{{
  "full_name": "<string or null>",
  "sailing_experience": <integer 1-4 or null, {levels}>,
  "risk_level": ["{RiskLevel.COASTAL.value}" | "{RiskLevel.OFFSHORE.value}" | "{RiskLevel.EXTREME.value}"],
  "skills": ["<skill name>"],
  "certifications": "<string or null>",
  "sailing_preferences": "<string or null>",
  "user_description": "<short bio or null>"
}}

[RULES]
- Never add text outside JSON.
"""


def validate_extracted_profile(data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Keep only valid profile values; returns (values, ignored field names)"""
    values: Dict[str, Any] = {}
    ignored: List[str] = []

    for field in TEXT_FIELDS:
        value = data.get(field)
        if value is None:
            continue
        if isinstance(value, str) and value.strip():
            values[field] = value.strip()
        else:
            ignored.append(field)

    level = data.get("sailing_experience")
    if level is not None:
        if isinstance(level, str) and level.strip().isdigit():
            level = int(level.strip())
        if isinstance(level, int) and not isinstance(level, bool) and 1 <= level <= 4:
            values["sailing_experience"] = level
        else:
            ignored.append("sailing_experience")

    risk = data.get("risk_level")
    if risk:
        allowed = {r.value for r in RiskLevel}
        risk = risk if isinstance(risk, list) else [risk]
        valid = [r for r in risk if r in allowed]
        if valid:
            values["risk_level"] = list(dict.fromkeys(valid))
        if len(valid) != len(risk):
            ignored.append("risk_level")

    skills = data.get("skills")
    if skills:
        normalized = [s for s in normalize_skill_names(skills if isinstance(skills, list) else [skills]) if s]
        if normalized:
            values["skills"] = list(dict.fromkeys(normalized))
        else:
            ignored.append("skills")

    return values, ignored


class AssistantService:
    def __init__(self, db: Session, llm: GroqLLMService):
        self.db = db
        self.llm = llm

    def require_ai_consent(self, user: User) -> None:
        if not has_ai_processing_consent(self.db, user.id):
            raise PermissionError("AI processing consent is required to use the assistant")

    # ---- Conversations ----

    @staticmethod
    def summarize(conversation: AIConversation, include_messages: bool = False) -> dict:
        data = {
            "id": conversation.id,
            "title": conversation.title,
            "message_count": len(conversation.messages),
            "created_at": conversation.created_at,
            "updated_at": conversation.updated_at,
        }
        if include_messages:
            data["messages"] = [m for m in conversation.messages if m.role != "system"]
        return data

    def list_conversations(self, user: User) -> List[AIConversation]:
        return (
            self.db.query(AIConversation)
            .filter(AIConversation.user_id == user.id)
            .order_by(AIConversation.updated_at.desc(), AIConversation.id.desc())
            .all()
        )

    def get_conversation(self, user: User, conversation_id: int) -> AIConversation:
        conversation = (
            self.db.query(AIConversation)
            .filter(AIConversation.id == conversation_id, AIConversation.user_id == user.id)
            .first()
        )
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation

    def delete_conversation(self, user: User, conversation_id: int) -> None:
        conversation = self.get_conversation(user, conversation_id)
        self.db.delete(conversation)
        self.db.commit()

    # ---- Chat ----

    def chat(self, user: User, message: str, conversation_id: Optional[int] = None) -> dict:
        """
        Append the user's message, ask the model and store its reply

        The user message is kept even when the model call fails.
        """
        self.require_ai_consent(user)
        text = message.strip()
        if not text:
            raise ValueError("Message is required")

        if conversation_id is not None:
            conversation = self.get_conversation(user, conversation_id)
        else:
            title = text if len(text) <= TITLE_LENGTH else text[: TITLE_LENGTH - 3].rstrip() + "..."
            conversation = AIConversation(user_id=user.id, title=title)
            self.db.add(conversation)
            self.db.flush()

        conversation.messages.append(AIMessage(role="user", content=text, metadata_json={}))
        self.db.commit()
        self.db.refresh(conversation)

        system, missing = build_system_prompt(user)
        history = [
            {"role": m.role, "content": m.content}
            for m in conversation.messages
            if m.role in ("user", "assistant")
        ][-HISTORY_LIMIT:]

        reply = self.llm.chat(history, system=system, use_case="assistant_chat").strip()
        if not reply:
            raise AIServiceError("Empty AI response", provider=PROVIDER, model=getattr(self.llm, "model", None))

        assistant_message = AIMessage(
            role="assistant",
            content=reply,
            metadata_json={"model": getattr(self.llm, "model", None), "missing_fields": missing},
        )
        conversation.messages.append(assistant_message)
        self.db.commit()
        self.db.refresh(assistant_message)
        logger.info("Assistant replied in conversation %s for user %s", conversation.id, user.id)

        return {"conversation_id": conversation.id, "message": assistant_message, "missing_fields": missing}

    # ---- Profile extraction ----

    def extract_profile(self, user: User, conversation_id: int, apply: bool = False) -> dict:
        self.require_ai_consent(user)
        conversation = self.get_conversation(user, conversation_id)
        if not any(m.role == "user" for m in conversation.messages):
            raise ValueError("Conversation has no user messages to extract from")

        reply = self.llm.complete(build_extraction_prompt(conversation.messages), use_case="profile_extraction")
        try:
            data = parse_json_response(reply)
        except ValueError as e:
            raise AIServiceError(str(e), provider=PROVIDER, model=getattr(self.llm, "model", None)) from e

        values, ignored = validate_extracted_profile(data)
        result = {
            "conversation_id": conversation.id,
            "extracted": values,
            "ignored": ignored,
            "applied": False,
            "profile_completion_percentage": None,
        }
        if apply and values:
            updated = AuthService(self.db).update_profile(user, UpdateProfileRequest(**values))
            result["applied"] = True
            result["profile_completion_percentage"] = updated.profile_completion_percentage
            logger.info("Applied %s extracted profile fields for user %s", len(values), user.id)
        return result
