"""Audit trail for customer, bill and transaction changes."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.audit_log import AuditLog


def _to_json(value: Any) -> Any:
    """Make Decimal, Enum and datetime values JSON-serializable."""
    if isinstance(value, dict):
        return {key: _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class AuditService:
    """Record and read audit entries.

    Entries are added to the caller's session and committed together with
    the change they describe, so a rolled-back write leaves no entry.
    """

    @staticmethod
    def log(
        session: AsyncSession,
        entity_type: str,
        entity_id: int,
        action: str,
        actor: str | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Create audit log entry (one-liner).

        Args:
            session: Database session
            entity_type: "customer", "bill" or "transaction"
            entity_id: Primary key of the entity
            action: "create", "update", "mark_paid", "mark_unpaid" or "delete"
            actor: Operator who performed the action (optional)
            changes: Field values; Decimal and Enum values are stored as strings

        Returns:
            Created AuditLog object
        """
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor=actor,
            changes=_to_json(changes) if changes is not None else None,
        )
        session.add(audit)
        return audit

    @staticmethod
    async def history(session: AsyncSession, entity_type: str, entity_id: int) -> list[AuditLog]:
        """Entries for one entity, oldest first."""
        result = await session.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
        )
        return list(result.scalars().all())


__all__ = ["AuditService"]
