"""
Memory implementation of FollowUpRepository.
"""

import logging
import uuid
from typing import Dict, List, Optional

from storefront.domain import FollowUp, utcnow
from storefront.repositories import FollowUpRepository

logger = logging.getLogger(__name__)


class MemoryFollowUpRepository(FollowUpRepository):
    def __init__(self) -> None:
        logger.debug("Initializing MemoryFollowUpRepository")
        self._follow_ups: Dict[str, FollowUp] = {}

    async def generate_id(self) -> str:
        return f"followup-{uuid.uuid4()}"

    async def save(self, follow_up: FollowUp) -> FollowUp:
        now = utcnow()
        existing = self._follow_ups.get(follow_up.follow_up_id)
        stored = follow_up.model_copy(
            update={
                "created_at": existing.created_at if existing else now,
                "updated_at": now,
            }
        )
        self._follow_ups[follow_up.follow_up_id] = stored
        logger.info(
            "MemoryFollowUpRepository: Follow-up saved",
            extra={
                "follow_up_id": stored.follow_up_id,
                "order_id": stored.order_id,
                "kind": stored.kind,
                "status": stored.status,
                "attempts": stored.attempts,
            },
        )
        return stored

    async def get(self, follow_up_id: str) -> Optional[FollowUp]:
        return self._follow_ups.get(follow_up_id)

    async def list_open(self) -> List[FollowUp]:
        # dicts keep insertion order, which is creation order here
        return [f for f in self._follow_ups.values() if f.status == "open"]
