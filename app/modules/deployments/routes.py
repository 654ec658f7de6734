from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from app.config.settings import Settings
from app.core.dependencies import (
    check_session_access,
    get_current_user_id,
    get_ledger_service,
    get_optional_user,
    get_settings,
)
from app.core.errors import NotFound
from app.modules.deployments.schemas import DeleteSessionResponse, ProvisionRequest, RepairUrlsRequest
from app.modules.deployments.service import DeploymentPipeline
from app.modules.exports.schemas import ExportRequest
from app.modules.sessions.service import LedgerService
from typing import Dict, Optional

router = APIRouter(prefix="/deploy", tags=["deploy"])


def get_deployment_pipeline(ledger: LedgerService = Depends(get_ledger_service)) -> DeploymentPipeline:
    return DeploymentPipeline(ledger)


def _claim_session(session_id: str, user_data: Optional[Dict], ledger: LedgerService, settings: Settings):
    """Create the session's ledger row for this actor if absent, then check ownership."""
    owner_id = user_data["id"] if user_data else None
    record = ledger.ensure_record(session_id, owner_id=owner_id)
    check_session_access(record, user_data, settings)
    return record


@router.post("/export")
async def export_to_github(
    request: ExportRequest,
    user_data: Optional[Dict] = Depends(get_optional_user),
    ledger: LedgerService = Depends(get_ledger_service),
    pipeline: DeploymentPipeline = Depends(get_deployment_pipeline),
    settings: Settings = Depends(get_settings)
):
    """Export a generation session to a new GitHub repository"""
    pipeline.require_credentials(request.repo_name)
    _claim_session(request.session_id, user_data, ledger, settings)
    return await pipeline.export_session(request)


@router.post("/provision-and-trigger")
async def provision_and_trigger(
    request: ProvisionRequest,
    user_data: Optional[Dict] = Depends(get_optional_user),
    ledger: LedgerService = Depends(get_ledger_service),
    pipeline: DeploymentPipeline = Depends(get_deployment_pipeline),
    settings: Settings = Depends(get_settings)
):
    """
    Export to GitHub, create the Vercel project and trigger the first deployment.
    Partial success (project created, no deployment started) is a 200 with partialSuccess=true.
    """
    pipeline.require_credentials(request.repo_name, hosting=True)
    _claim_session(request.session_id, user_data, ledger, settings)
    result = await pipeline.provision_and_trigger(request)
    return JSONResponse(status_code=result.status_code, content=result.body)


@router.get("/session/{session_id}")
async def get_session_deployment(
    session_id: str,
    user_data: Optional[Dict] = Depends(get_optional_user),
    ledger: LedgerService = Depends(get_ledger_service),
    settings: Settings = Depends(get_settings)
):
    """Deployment info stored for a session"""
    record = ledger.get_record(session_id)
    if record is None:
        raise NotFound()
    check_session_access(record, user_data, settings)
    return record.deployment_info()


@router.delete("/session/{session_id}", response_model=DeleteSessionResponse, response_model_by_alias=True)
async def delete_session(
    session_id: str,
    user_data: Dict = Depends(get_current_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
    pipeline: DeploymentPipeline = Depends(get_deployment_pipeline),
    settings: Settings = Depends(get_settings)
):
    """Delete the session's Vercel project, GitHub repository and ledger row"""
    record = ledger.get_record(session_id)
    if record is None:
        raise NotFound()
    check_session_access(record, user_data, settings)
    result = await pipeline.delete_session(record)
    return DeleteSessionResponse(
        success=result["success"],
        deleted_repository=result["deletedRepository"],
        deleted_hosting_project=result["deletedHostingProject"],
    )


@router.post("/repair-urls")
async def repair_urls(
    request: Optional[RepairUrlsRequest] = None,
    user_data: Dict = Depends(get_current_user_id),
    ledger: LedgerService = Depends(get_ledger_service),
    settings: Settings = Depends(get_settings)
):
    """Rewrite stored hosting URLs to the production domain and team dashboard format"""
    team_slug = (request.team_slug if request else None) or settings.vercel_team_slug
    if not team_slug:
        raise HTTPException(status_code=400, detail="VERCEL_TEAM_SLUG is not configured")
    changes = ledger.repair_hosting_urls(team_slug)
    return {"success": True, "updated": len(changes), "changes": changes}
