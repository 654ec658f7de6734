from fastapi import APIRouter, Depends
from app.config.settings import Settings
from app.core.dependencies import check_session_access, get_ledger_service, get_optional_user, get_settings
from app.modules.exports.bitbucket import BitbucketExporter
from app.modules.exports.schemas import BitbucketExportRequest
from app.modules.exports.templates import TemplateFiller
from app.modules.generation.client import GenerationClient
from app.modules.sessions.service import LedgerService
from app.core.errors import NothingToExport
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/export", tags=["export"])


def get_generation_client() -> GenerationClient:
    return GenerationClient()


def get_bitbucket_exporter() -> BitbucketExporter:
    return BitbucketExporter(filler=TemplateFiller())


@router.post("/bitbucket")
async def export_to_bitbucket(
    request: BitbucketExportRequest,
    user_data: Optional[Dict] = Depends(get_optional_user),
    ledger: LedgerService = Depends(get_ledger_service),
    generation: GenerationClient = Depends(get_generation_client),
    exporter: BitbucketExporter = Depends(get_bitbucket_exporter),
    settings: Settings = Depends(get_settings)
):
    """Export a generation session to a new Bitbucket repository (one commit per file)"""
    exporter.require_credentials()
    record = ledger.ensure_record(request.session_id, owner_id=user_data["id"] if user_data else None)
    check_session_access(record, user_data, settings)

    session = await generation.get_session(request.session_id)
    if not session.files:
        raise NothingToExport()
    result = await exporter.export_files(
        session.files,
        request.repo_name,
        request.workspace,
        description=f"Generated site: {session.title or request.repo_name}",
    )
    try:
        ledger.update_deployment(request.session_id, repository_name=result.name, repository_url=result.url)
    except Exception as e:
        logger.error(f"Failed to save repository info for session {request.session_id}: {str(e)}")

    return {
        "success": True,
        "repository": result.repository_body(),
        "filesCreated": len(result.files),
        "files": result.files,
    }
