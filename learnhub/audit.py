from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.identity import Principal


async def log_audit(
    db: AsyncIOMotorDatabase,
    actor: Principal,
    action: str,
    target_type: str,
    target_id: str,
    metadata: Optional[dict] = None,
):
    """
    Log destructive or privileged actions for auditability

    Args:
        actor: Principal performing the action
        action: Action performed (e.g., 'delete_course', 'disable_user')
        target_type: Resource type (e.g., 'course', 'lesson', 'user')
        target_id: ID of the resource
        metadata: Additional context (optional)
    """
    await db.audit_logs.insert_one({
        "actor_user_id": actor.id,
        "role": actor.role.value,
        "action": action,
        "target_type": target_type,
        "target_id": target_id,
        "metadata": metadata or {},
        "timestamp": datetime.utcnow(),
    })


async def get_audit_trail(
    db: AsyncIOMotorDatabase,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    limit: int = 100,
):
    """Retrieve audit logs with optional filters, newest first"""
    query = {}

    if target_type:
        query["target_type"] = target_type

    if target_id:
        query["target_id"] = target_id

    cursor = db.audit_logs.find(query).sort("timestamp", -1).limit(limit)
    logs = await cursor.to_list(length=limit)

    for log in logs:
        log.pop("_id", None)

    return logs
