"""
Memory implementation of AdminRepository.
"""

import logging
import uuid
from typing import Iterable, List, Optional, Set

from storefront.domain import AdminActivityLog, utcnow
from storefront.repositories import AdminRepository

logger = logging.getLogger(__name__)


class MemoryAdminRepository(AdminRepository):
    """Holds the set of active admin user IDs and the activity log."""

    def __init__(self, admin_user_ids: Optional[Iterable[str]] = None) -> None:
        logger.debug("Initializing MemoryAdminRepository")
        self._admins: Set[str] = set(admin_user_ids or [])
        self._activity: List[AdminActivityLog] = []

    def grant(self, user_id: str) -> None:
        self._admins.add(user_id)

    def revoke(self, user_id: str) -> None:
        self._admins.discard(user_id)

    async def is_active_admin(self, user_id: str) -> bool:
        return user_id in self._admins

    async def log_activity(
        self, entry: AdminActivityLog
    ) -> AdminActivityLog:
        stored = entry.model_copy(
            update={
                "log_id": entry.log_id or str(uuid.uuid4()),
                "created_at": utcnow(),
            }
        )
        self._activity.append(stored)
        logger.info(
            "MemoryAdminRepository: Activity logged",
            extra={
                "action": stored.action,
                "resource_type": stored.resource_type,
                "resource_id": stored.resource_id,
            },
        )
        return stored

    async def list_activity(
        self, resource_type: str, resource_id: str
    ) -> List[AdminActivityLog]:
        return [
            e
            for e in self._activity
            if e.resource_type == resource_type
            and e.resource_id == resource_id
        ]
