import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from app.models.audit import Log
from app.utils.helpers import get_client_ip

logger = logging.getLogger(__name__)


class AuditService:

    @staticmethod
    def record(
        db: Session,
        request: Optional[Request],
        user_id: Optional[str],
        action: str,
        commit: bool = True,
    ) -> Log:
        """Append an entry to the audit log. With commit=False the caller owns the transaction."""
        entry = Log(
            user_id=user_id,
            action=action,
            ip_address=get_client_ip(request),
        )
        db.add(entry)
        if commit:
            db.commit()
        logger.info(f"audit user={user_id} action={action}")
        return entry
