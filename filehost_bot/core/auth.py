from __future__ import annotations

from typing import Iterable

from .errors import AuthorizationError


class AdminGate:
    def __init__(self, admin_ids: Iterable[int]) -> None:
        self._admin_ids = frozenset(int(item) for item in admin_ids)

    @property
    def admin_ids(self) -> frozenset[int]:
        return self._admin_ids

    def is_admin(self, actor_id: int) -> bool:
        return int(actor_id) in self._admin_ids

    def require_admin(self, actor_id: int) -> None:
        if not self.is_admin(actor_id):
            raise AuthorizationError(f"actor {actor_id} is not an admin")
