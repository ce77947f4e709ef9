"""Best-effort event notifications."""

from __future__ import annotations

import logging
from typing import Any

from fastapi.encoders import jsonable_encoder

from ballotbox.services.common import Database

logger = logging.getLogger(__name__)


class NotificationService:
    """Record election events for downstream delivery.

    Delivery is fire-and-forget: a failure here is logged and never reaches
    the vote or transition that triggered it.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def notify(self, event: str, payload: dict[str, Any]) -> bool:
        """Store one event row; return False when it could not be stored."""
        try:
            self.db.insert_one(
                "notifications",
                {"event": event, "payload": jsonable_encoder(payload)},
            )
        except Exception:  # noqa: BLE001
            logger.warning("Notification %s could not be recorded", event, exc_info=True)
            return False
        return True

