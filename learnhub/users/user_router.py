from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from learnhub.auth.identity import Principal
from learnhub.dependencies import get_current_principal, get_user_gateway, parse_form, read_image
from learnhub.users.user_models import FcmTokenRequest, Gender, ProfileUpdate
from learnhub.users.user_service import UserGateway

router = APIRouter(prefix="/users", tags=["Users"])

# ==================== SELF SERVICE ====================

@router.get("/me")
async def get_me(
    principal: Principal = Depends(get_current_principal),
    users: UserGateway = Depends(get_user_gateway),
):
    return await users.get_me(principal)


@router.patch("/me")
async def update_me(
    name: Optional[str] = Form(None),
    nickname: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    date_of_birth: Optional[date] = Form(None),
    gender: Optional[Gender] = Form(None),
    delete_avatar: bool = Form(False),
    avatar: Optional[UploadFile] = File(None),
    principal: Principal = Depends(get_current_principal),
    users: UserGateway = Depends(get_user_gateway),
):
    """Update profile fields; avatar upload or removal"""
    payload = parse_form(ProfileUpdate, {
        "name": name,
        "nickname": nickname,
        "location": location,
        "date_of_birth": date_of_birth,
        "gender": gender,
    })
    image = await read_image(avatar)
    return await users.update_me(
        principal,
        payload.model_dump(exclude_unset=True),
        avatar=image,
        delete_avatar=delete_avatar,
    )


@router.post("/fcm-token")
async def save_fcm_token(
    payload: FcmTokenRequest,
    principal: Principal = Depends(get_current_principal),
    users: UserGateway = Depends(get_user_gateway),
):
    await users.save_fcm_token(principal, payload.fcm_token)
    return {"message": "FCM token saved"}

# ==================== ADMIN ====================

@router.get("/audit-logs")
async def list_audit_logs(
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    principal: Principal = Depends(get_current_principal),
    users: UserGateway = Depends(get_user_gateway),
):
    """Admin audit trail, newest first"""
    logs = await users.audit_trail(principal, target_type, target_id, limit)
    return {"total": len(logs), "logs": logs}


@router.patch("/{user_id}/make-teacher")
async def make_teacher(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    users: UserGateway = Depends(get_user_gateway),
):
    user = await users.make_teacher(principal, user_id)
    return {"message": "User promoted to teacher", "user": user}


@router.patch("/{user_id}/disable")
async def disable_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    users: UserGateway = Depends(get_user_gateway),
):
    await users.disable(principal, user_id)
    return {"message": "User disabled successfully"}


@router.patch("/{user_id}/restore")
async def restore_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    users: UserGateway = Depends(get_user_gateway),
):
    await users.restore(principal, user_id)
    return {"message": "User restored successfully"}

# ==================== PUBLIC ====================

@router.get("/{user_id}")
async def get_user(user_id: str, users: UserGateway = Depends(get_user_gateway)):
    return await users.get_by_id(user_id)
