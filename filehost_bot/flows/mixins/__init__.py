from .admin_menu_mixin import PROMPT_ACTIONS, AdminMenuMixin
from .artifact_mixin import ArtifactMixin
from .continuations_mixin import ContinuationsMixin
from .user_menu_mixin import UserMenuMixin

__all__ = [
    "AdminMenuMixin",
    "ArtifactMixin",
    "ContinuationsMixin",
    "PROMPT_ACTIONS",
    "UserMenuMixin",
]
