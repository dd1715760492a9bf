"""Audit trail for booking and availability changes.

Thin wrapper over :class:`AuditRepository` that pulls the client address
from the request, so route handlers only pass what changed.
"""

import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.repository import AuditRepository

logger = logging.getLogger(__name__)


async def log_change(
    db: AsyncSession,
    request: Request,
    principal: str,
    action: str,
    resource_type: str,
    resource_id: str,
    details: Optional[dict] = None,
) -> None:
    """Record one mutation by *principal* in the same transaction as the change."""
    await AuditRepository(db).log_action(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        user_id=principal,
        details=details,
        ip_address=request.client.host if request.client else None,
    )
    logger.debug(f"Audit: {principal} {action} {resource_type}/{resource_id}")
