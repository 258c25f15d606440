from __future__ import annotations

from sqlalchemy.orm import Session

from pos_portal.models import AuditLog


def log_audit(
    db: Session,
    *,
    store_id: str,
    actor_user_id: int | None,
    action: str,
    transaction_id: int | None,
    metadata: dict | None = None,
) -> None:
    db.add(
        AuditLog(
            store_id=store_id,
            actor_user_id=actor_user_id,
            action=action,
            transaction_id=transaction_id,
            meta=metadata or {},
        )
    )
