"""Store settings API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Any, Dict

from auth import require_admin
from database import get_db
from dependencies import get_settings_service
from schemas import SettingResponse, SettingUpdate
from services.settings_service import SettingsService

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=Dict[str, Any])
async def get_settings(
    db: Session = Depends(get_db),
    settings: SettingsService = Depends(get_settings_service)
):
    """Public store settings, defaults filled in."""
    return settings.get_settings(db)


@router.put("", response_model=SettingResponse, dependencies=[Depends(require_admin)])
async def put_setting(
    request: SettingUpdate,
    db: Session = Depends(get_db),
    settings: SettingsService = Depends(get_settings_service)
):
    """Create or overwrite a setting - admin only."""
    setting = settings.put_setting(db, request.key, request.value)
    return {"key": setting.key, "value": setting.value}
