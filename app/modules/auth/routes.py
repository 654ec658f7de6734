from fastapi import APIRouter, Depends
from app.config.settings import Settings
from app.core.dependencies import get_current_user_id, get_settings, is_super_user
from app.modules.auth.schemas import CurrentUserResponse
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=CurrentUserResponse, response_model_by_alias=True)
async def get_current_user(
    current_user: Dict = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
):
    """Current authenticated actor and the session authorization mode in effect."""
    return CurrentUserResponse(
        id=current_user["id"],
        email=current_user.get("email"),
        user_metadata=current_user.get("user_metadata") or {},
        authorization_mode=settings.authorization_mode,
        is_super_user=is_super_user(current_user),
    )
