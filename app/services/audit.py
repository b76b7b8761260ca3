from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy import func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import context
from app.core.actor import ActorContext
from app.core.logging import get_lifecycle_logger
from app.models.audit_log import AuditLog

# Amounts are stored as strings so 1027.29 never turns into a float in the event log.
_AUDIT_ENCODERS = {
    Decimal: str,
    datetime: lambda v: v.isoformat(),
    date: lambda v: v.isoformat(),
    Enum: lambda v: v.value,
}
_SUMMARY_FIELDS = 3


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(value, custom_encoder=_AUDIT_ENCODERS)


def model_snapshot(model: Any, *, exclude: Iterable[str] | None = None) -> dict[str, Any]:
    """Column values of a mapped row, keyed by column name, ready for the event log."""
    if model is None:
        return {}
    excluded = set(exclude or ())
    mapper = inspect(type(model))
    data = {
        attr.columns[0].name: getattr(model, attr.key, None)
        for attr in mapper.column_attrs
        if attr.columns[0].name not in excluded
    }
    return serialize_for_audit(data)


def _diff_values(old: Any, new: Any, prefix: str = "") -> dict[str, dict[str, Any]]:
    if not (isinstance(old, dict) and isinstance(new, dict)):
        return {} if old == new else {prefix or "value": {"from": old, "to": new}}
    changes: dict[str, dict[str, Any]] = {}
    for key in sorted(set(old) | set(new), key=str):
        path = f"{prefix}.{key}" if prefix else str(key)
        changes.update(_diff_values(old.get(key), new.get(key), path))
    return changes


def _build_summary(action: str, changes: dict[str, dict[str, Any]] | None) -> str:
    if not changes:
        return action
    fields = sorted(changes)
    shown = ", ".join(fields[:_SUMMARY_FIELDS])
    if len(fields) > _SUMMARY_FIELDS:
        shown += f" (+{len(fields) - _SUMMARY_FIELDS} more)"
    return f"{action}: {shown}"


def record_audit_log(
    db: AsyncSession,
    actor: ActorContext | None,
    *,
    action: str,
    resource_type: str,
    resource_id: Any,
    old_value: Any | None = None,
    new_value: Any | None = None,
) -> AuditLog:
    """Stage a lifecycle event row and emit it on the lifecycle log stream.

    The row joins the caller's transaction; nothing is committed here.
    """
    serialized_old = serialize_for_audit(old_value) if old_value is not None else None
    serialized_new = serialize_for_audit(new_value) if new_value is not None else None
    changes = None
    if serialized_old is not None or serialized_new is not None:
        changes = _diff_values(serialized_old or {}, serialized_new or {}) or None
    summary = _build_summary(action, changes)
    entry = AuditLog(
        actor_id=actor.actor_id if actor else None,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id),
        old_value=serialized_old,
        new_value=serialized_new,
        changes=changes,
        summary=summary,
        request_id=context.snapshot()["request_id"],
    )
    db.add(entry)
    get_lifecycle_logger().info(
        summary,
        extra={
            "event": {
                "action": action,
                "resource_type": resource_type,
                "resource_id": str(resource_id),
                "changed_fields": sorted(changes.keys()) if changes else [],
            }
        },
    )
    return entry


async def list_resource_events(
    db: AsyncSession,
    *,
    resource_type: str,
    resource_id: UUID | str,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    filters = [
        AuditLog.resource_type == resource_type,
        AuditLog.resource_id == str(resource_id),
    ]
    count_stmt = select(func.count()).select_from(AuditLog).where(*filters)
    total = (await db.execute(count_stmt)).scalar_one_or_none() or 0
    stmt = (
        select(AuditLog)
        .where(*filters)
        .order_by(AuditLog.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), int(total)
