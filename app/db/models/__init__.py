"""Model package initializer to ensure SQLAlchemy mappings are registered."""

# Import all model modules so relationship string lookups (e.g. "Journey")
# can be resolved when SQLAlchemy configures mappers.
from app.db.models.user import User  # noqa: F401
from app.db.models.boat import Boat, BoatEquipment, BoatInventory, BoatMaintenanceTask  # noqa: F401
from app.db.models.journey import Journey, Leg, Waypoint, JourneyRequirement  # noqa: F401
from app.db.models.registration import Registration, RegistrationAnswer  # noqa: F401
from app.db.models.notification import Notification, EmailPreferences  # noqa: F401
from app.db.models.feedback import Feedback, FeedbackVote, FeedbackPromptDismissal  # noqa: F401
from app.db.models.consent import UserConsent, ConsentAuditLog  # noqa: F401
from app.db.models.assistant import AIConversation, AIMessage  # noqa: F401
