"""
Document activity notifier.

Persists workflow lifecycle events as DocumentLog rows.  Logging is
fire-and-forget: a failed write is rolled back and reported at WARNING, and
never fails the workflow operation that triggered it.
"""

from __future__ import annotations

import logging

from doccontrol.models import db
from doccontrol.models.audit import write_document_log

logger = logging.getLogger(__name__)


class ActivityNotifier:
    def log(
        self,
        document_id: str,
        *,
        action: str,
        description: str,
        details: dict | None = None,
        metadata: dict | None = None,
        user_id: str | None = None,
    ) -> bool:
        """Record one activity event.  Returns False when the write failed."""
        try:
            write_document_log(
                document_id=document_id,
                action=action,
                description=description,
                user_id=user_id,
                details=details,
                metadata=metadata,
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.warning(
                "Failed to log document activity",
                exc_info=True,
                extra={"document_id": document_id, "event_type": action},
            )
            return False
        return True
