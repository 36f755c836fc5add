"""System settings routes (admin management and public read-only access)."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from src.shared.admin.dependencies import verify_admin
from src.shared.settings.settings_service import (
    PUBLIC_CATEGORIES,
    SettingsService,
    UnknownSettingsCategory,
    get_settings_service,
)

admin_router = APIRouter(prefix="/api/admin/settings", tags=["admin"])
public_router = APIRouter(prefix="/api/settings", tags=["settings"])


class SettingsUpdateRequest(BaseModel):
    """Schema for updating one settings category."""
    category: str
    settings: Dict[str, Any]


class SettingsResetRequest(BaseModel):
    category: Optional[str] = None


def _unknown_category(category: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Setting category '{category}' not found"
    )


@admin_router.get("")
async def get_system_settings(
    admin: str = Depends(verify_admin),
    settings_service: SettingsService = Depends(get_settings_service),
) -> Dict[str, Any]:
    return {"success": True, "data": settings_service.get_all()}


@admin_router.get("/{category}")
async def get_setting_category(
    category: str,
    admin: str = Depends(verify_admin),
    settings_service: SettingsService = Depends(get_settings_service),
) -> Dict[str, Any]:
    try:
        return {"success": True, "data": settings_service.get_category(category)}
    except UnknownSettingsCategory:
        raise _unknown_category(category)


@admin_router.put("")
async def update_system_settings(
    update: SettingsUpdateRequest,
    admin: str = Depends(verify_admin),
    settings_service: SettingsService = Depends(get_settings_service),
) -> Dict[str, Any]:
    try:
        updated = settings_service.update_category(update.category, update.settings)
    except UnknownSettingsCategory:
        raise _unknown_category(update.category)
    return {"success": True, "message": "Settings updated successfully", "data": updated}


@admin_router.post("/reset")
async def reset_settings(
    reset: SettingsResetRequest,
    admin: str = Depends(verify_admin),
    settings_service: SettingsService = Depends(get_settings_service),
) -> Dict[str, Any]:
    try:
        data = settings_service.reset(reset.category)
    except UnknownSettingsCategory:
        raise _unknown_category(reset.category)
    label = f"{reset.category} settings" if reset.category else "All settings"
    return {"success": True, "message": f"{label} reset to default", "data": data}


@public_router.get("/public")
async def get_public_settings(
    settings_service: SettingsService = Depends(get_settings_service),
) -> Dict[str, Any]:
    """Settings that the public site may read (general information only)."""
    return {
        "success": True,
        "data": {category: settings_service.get_category(category) for category in PUBLIC_CATEGORIES},
    }


@public_router.get("/public/{category}")
async def get_public_setting_category(
    category: str,
    settings_service: SettingsService = Depends(get_settings_service),
) -> Dict[str, Any]:
    if category not in PUBLIC_CATEGORIES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Only general settings are publicly available."
        )
    return {"success": True, "data": settings_service.get_category(category)}
