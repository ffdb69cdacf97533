from .auth import AdminGate
from .bot_config import (
    BotConfigStore,
    FileTypesConfig,
    NotificationsConfig,
    PremiumSettings,
    WelcomeMessageConfig,
)
from .conversation import ConversationState, ConversationStateMachine, ConversationStep
from .errors import (
    AuthorizationError,
    CollaboratorError,
    ConcurrencyConflict,
    FileHostError,
    NotFoundError,
    ValidationError,
)
from .fanout import ALL, FanoutEngine, FanoutReport
from .ledger import AdmissionResult, BulkResult, QuotaLedger
from .referrals import ReferralGraph

__all__ = [
    "ALL",
    "AdminGate",
    "AdmissionResult",
    "AuthorizationError",
    "BotConfigStore",
    "BulkResult",
    "CollaboratorError",
    "ConcurrencyConflict",
    "ConversationState",
    "ConversationStateMachine",
    "ConversationStep",
    "FanoutEngine",
    "FanoutReport",
    "FileHostError",
    "FileTypesConfig",
    "NotFoundError",
    "NotificationsConfig",
    "PremiumSettings",
    "QuotaLedger",
    "ReferralGraph",
    "ValidationError",
    "WelcomeMessageConfig",
]
