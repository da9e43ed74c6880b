"""Audit trail writer. Entries are append-only; nothing here reads them back."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request

from app.models.audit import AuditAction, AuditLog, EntityType
from app.models.user import User

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def record_audit(
    action: AuditAction,
    *,
    actor: Optional[User] = None,
    entity_type: Optional[EntityType] = None,
    entity_id: Optional[str] = None,
    note: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    entry = AuditLog(
        action=action,
        user_id=str(actor.id) if actor else None,
        user_name=actor.name if actor else None,
        user_role=actor.role.value if actor else None,
        entity_type=entity_type,
        entity_id=entity_id,
        note=note,
        metadata=metadata or {},
    )
    if request is not None:
        entry.ip_address = client_ip(request)
        entry.user_agent = request.headers.get("user-agent")
    await entry.insert()
    logger.debug("audit %s %s:%s", action.value, entity_type.value if entity_type else "-", entity_id)
    return entry
