"""
Audit trail recorder.

Appends one immutable row per state-changing ledger action. Recording is
best-effort: it runs after the primary write has committed, and a failure
is logged and swallowed so it can never undo or block that write.
"""

import logging
from typing import Optional, Dict, Any, List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ledger_backend.app.models.audit_event import AuditEvent
from ledger_backend.app.models.ledger_enums import AuditAction

logger = logging.getLogger("ledger.audit")


async def record_audit_event(
    db: AsyncSession,
    action: AuditAction,
    table_name: str,
    record_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    reason: Optional[str] = None,
    previous_data: Optional[Dict[str, Any]] = None,
    new_data: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[AuditEvent]:
    """
    Record an audit event.

    Args:
        db: Database session (the primary mutation must already be committed)
        action: What happened (AuditAction)
        table_name: Table of the affected record
        record_id: Primary key of the affected record
        actor_id: Volunteer performing the action (None for system actions)
        reason: Free-text justification, if any
        previous_data: Snapshot before the change
        new_data: Snapshot after the change
        metadata: Additional context such as the originating module

    Returns:
        Created AuditEvent, or None if the write failed
    """
    try:
        event = AuditEvent(
            actor_id=actor_id,
            table_name=table_name,
            record_id=record_id,
            action=action,
            reason=reason,
            previous_data=previous_data,
            new_data=new_data,
            meta_data=metadata or {},
        )
        db.add(event)
        await db.commit()
        return event
    except Exception:
        logger.exception(
            "Failed to record audit event %s for %s/%s", action, table_name, record_id
        )
        try:
            await db.rollback()
        except Exception:
            logger.exception("Rollback after failed audit write also failed")
        return None


async def get_audit_trail(
    db: AsyncSession,
    table_name: Optional[str] = None,
    record_id: Optional[int] = None,
    action: Optional[AuditAction] = None,
    limit: int = 100
) -> List[AuditEvent]:
    """
    Retrieve audit trail with optional filtering, in insertion order.

    Args:
        db: Database session
        table_name: Filter by table
        record_id: Filter by record ID
        action: Filter by action type
        limit: Maximum number of records to return

    Returns:
        List of AuditEvent instances, oldest first
    """
    query = select(AuditEvent).order_by(AuditEvent.id)

    if table_name:
        query = query.where(AuditEvent.table_name == table_name)

    if record_id is not None:
        query = query.where(AuditEvent.record_id == record_id)

    if action:
        query = query.where(AuditEvent.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
