"""
User gateway
Profiles, promotion and account disable/restore
"""

import logging
from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from learnhub.audit import get_audit_trail, log_audit
from learnhub.auth.identity import Principal, Role
from learnhub.auth.policy import ADMINS, Action, ensure_authorized, ensure_role
from learnhub.courses.database import pick_allowed
from learnhub.errors import InvalidState, NotFound, ValidationError
from learnhub.media.uploader import AssetUploader

logger = logging.getLogger("learnhub.users")

PROFILE_UPDATE_FIELDS = ("name", "nickname", "location", "date_of_birth", "gender")
AVATAR_FOLDER = "avatars"


def format_user(user: dict) -> dict:
    """Public projection of a users document"""
    return {
        "id": user["user_id"],
        "name": user.get("name", "New User"),
        "nickname": user.get("nickname") or "",
        "email": user.get("email"),
        "avatar": user.get("avatar") or "",
        "location": user.get("location") or "",
        "date_of_birth": user.get("date_of_birth"),
        "gender": user.get("gender"),
        "email_verified": bool(user.get("email_verified", False)),
        "role": user.get("role") or Role.STUDENT.value,
        "is_deleted": bool(user.get("is_deleted", False)),
        "created_at": user.get("created_at"),
    }


def _storable(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time())
    return value


class UserGateway:
    def __init__(self, db: AsyncIOMotorDatabase, uploader: Optional[AssetUploader] = None):
        self.db = db
        self.uploader = uploader

    async def require(self, user_id: str) -> dict:
        user = await self.db.users.find_one({"user_id": user_id}, {"_id": 0})
        if not user:
            raise NotFound("User not found")
        return user

    async def _set(self, user_id: str, fields: dict) -> dict:
        fields["updated_at"] = datetime.utcnow()
        user = await self.db.users.find_one_and_update(
            {"user_id": user_id},
            {"$set": fields},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
        if not user:
            raise NotFound("User not found")
        return user

    # ==================== SELF SERVICE ====================

    async def get_me(self, principal: Principal) -> dict:
        ensure_authorized(principal, Action.MANAGE_PROFILE, principal.id)
        return format_user(await self.require(principal.id))

    async def update_me(
        self,
        principal: Principal,
        changes: dict,
        avatar: Optional[bytes] = None,
        delete_avatar: bool = False,
    ) -> dict:
        ensure_authorized(principal, Action.MANAGE_PROFILE, principal.id)

        updates = {k: _storable(v) for k, v in pick_allowed(changes, PROFILE_UPDATE_FIELDS).items()}
        if avatar:
            updates["avatar"] = await self.uploader.upload(avatar, AVATAR_FOLDER, resource_type="image")
        elif delete_avatar:
            updates["avatar"] = ""

        return format_user(await self._set(principal.id, updates))

    async def save_fcm_token(self, principal: Principal, fcm_token: Optional[str]) -> dict:
        ensure_authorized(principal, Action.MANAGE_PROFILE, principal.id)
        if not fcm_token:
            raise ValidationError("fcm_token is required")
        return format_user(await self._set(principal.id, {"fcm_token": fcm_token}))

    # ==================== PUBLIC ====================

    async def get_by_id(self, user_id: str) -> dict:
        return format_user(await self.require(user_id))

    # ==================== ADMIN ====================

    async def make_teacher(self, principal: Principal, user_id: str) -> dict:
        """Promote a user to teacher"""
        ensure_role(principal, ADMINS, "Only admin can promote users")
        await self.require(user_id)

        user = await self._set(user_id, {"role": Role.TEACHER.value})
        await log_audit(self.db, principal, "make_teacher", "user", user_id)
        logger.info("User %s promoted to teacher", user_id)
        return format_user(user)

    async def disable(self, principal: Principal, user_id: str) -> dict:
        """Soft delete a user (disable account)"""
        ensure_role(principal, ADMINS)
        if principal.id == user_id:
            raise InvalidState("You cannot delete yourself")
        await self.require(user_id)

        user = await self._set(user_id, {"is_deleted": True, "deleted_at": datetime.utcnow()})
        await log_audit(self.db, principal, "disable_user", "user", user_id)
        logger.info("User %s disabled", user_id)
        return format_user(user)

    async def restore(self, principal: Principal, user_id: str) -> dict:
        """Restore a soft-deleted user"""
        ensure_role(principal, ADMINS)
        await self.require(user_id)

        user = await self._set(user_id, {"is_deleted": False, "deleted_at": None})
        await log_audit(self.db, principal, "restore_user", "user", user_id)
        logger.info("User %s restored", user_id)
        return format_user(user)

    async def audit_trail(
        self,
        principal: Principal,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        limit: int = 100,
    ) -> list:
        ensure_role(principal, ADMINS)
        return await get_audit_trail(self.db, target_type, target_id, limit)
