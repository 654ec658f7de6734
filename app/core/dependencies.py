"""
Core dependencies for identity resolution and session access checks
"""

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.config.settings import Settings, settings as app_settings
from app.core.errors import Forbidden
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService
from app.modules.sessions.events import DeploymentEventBus, get_event_bus
from app.modules.sessions.schemas import DeploymentRecord
from app.modules.sessions.service import LedgerService
from supabase import Client
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

# Bearer token is optional: export and deploy accept anonymous actors
security = HTTPBearer(auto_error=False)


def get_settings() -> Settings:
    return app_settings


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Optional[Dict[str, Any]]:
    """Current user info from the JWT token, or None for an anonymous request"""
    if credentials is None:
        return None
    return auth_service.get_current_user(credentials.credentials)


def get_current_user_id(
    user_data: Optional[Dict[str, Any]] = Depends(get_optional_user)
) -> dict:
    """Extract current user info from JWT token; 401 when no token was sent"""
    if user_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_data


def is_super_user(user_data: Optional[dict]) -> bool:
    """Check if user is a super user from app_metadata"""
    if not user_data:
        return False
    # app_metadata is set server-side and cannot be modified by users
    app_metadata = user_data.get("app_metadata") or {}
    return app_metadata.get("type") == "super_user"


def check_session_access(
    record: DeploymentRecord,
    user_data: Optional[dict],
    settings: Settings = app_settings
) -> Optional[dict]:
    """Allow if super_user, the record has no owner, the caller owns it, or shared mode with any authenticated caller."""
    if is_super_user(user_data):
        return user_data
    if record.owner_id is None:
        return user_data
    if user_data is not None:
        if settings.is_shared_mode or user_data.get("id") == record.owner_id:
            return user_data
    logger.warning(f"Access to session {record.session_id} denied")
    raise Forbidden()


def get_ledger_service(
    supabase: Client = Depends(get_supabase),
    events: DeploymentEventBus = Depends(get_event_bus)
) -> LedgerService:
    return LedgerService(supabase, events)
