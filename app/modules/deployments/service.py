import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from app.config import settings
from app.core.errors import NothingToExport, PipelineError
from app.modules.deployments.schemas import ProvisionRequest
from app.modules.exports.github import GitHubExporter
from app.modules.exports.schemas import ExportRequest, ExportResult
from app.modules.exports.templates import TemplateFiller
from app.modules.generation.client import GenerationClient
from app.modules.generation.schemas import GenerationSession
from app.modules.hosting.schemas import HostingProject, TriggeredDeployment
from app.modules.hosting.triggers import DeploymentTrigger
from app.modules.hosting.vercel import VercelClient, sanitize_project_name
from app.modules.sessions.schemas import DeploymentRecord, DeploymentStatus
from app.modules.sessions.service import LedgerService

logger = logging.getLogger(__name__)

MANUAL_DEPLOY_INSTRUCTIONS = [
    "1. Go to Vercel dashboard",
    "2. Click on your project",
    '3. Click "Deploy" button',
    "4. Your site will be live in ~2 minutes!",
]


class PipelineState(str, Enum):
    IDLE = "idle"
    EXPORT_STARTED = "export_started"
    EXPORTED = "exported"
    PROVISIONED = "provisioned"
    DEPLOY_TRIGGERED = "deploy_triggered"
    DEPLOY_FALLBACK_EXHAUSTED = "deploy_fallback_exhausted"
    PERSISTED = "persisted"


class PipelineOutcome(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    PROVISIONING_FAILED = "provisioning_failed"
    FAILED_AFTER_EXPORT = "failed_after_export"


class PipelineResult:
    """Terminal outcome of provision-and-trigger: response status and body."""

    def __init__(self, outcome: PipelineOutcome, status_code: int, body: Dict[str, Any]):
        self.outcome = outcome
        self.status_code = status_code
        self.body = body


class DeploymentPipeline:
    """
    Export -> provision -> trigger -> persist, run to completion inside one request.

    Anything failing before the export completes propagates as a PipelineError
    and leaves no deployment fields in the ledger. After the export, every
    outcome is returned as a PipelineResult that still carries the repository.
    Created external resources are never rolled back.
    """

    def __init__(
        self,
        ledger: LedgerService,
        generation: Optional[GenerationClient] = None,
        exporter: Optional[GitHubExporter] = None,
        vercel: Optional[VercelClient] = None,
        trigger: Optional[DeploymentTrigger] = None,
        settle_seconds: Optional[float] = None,
    ):
        self.ledger = ledger
        self.generation = generation or GenerationClient()
        self.exporter = exporter
        self.vercel = vercel or VercelClient()
        self.trigger = trigger or DeploymentTrigger(self.vercel)
        self.settle_seconds = settings.project_settle_seconds if settle_seconds is None else settle_seconds
        self.state = PipelineState.IDLE

    def _github(self, repo_name: str) -> GitHubExporter:
        if self.exporter is not None:
            return self.exporter
        return GitHubExporter(filler=TemplateFiller(project_name=sanitize_project_name(repo_name) or "generated-site"))

    def require_credentials(self, repo_name: str, hosting: bool = False):
        """Fail with CredentialsMissing before any network call is made."""
        self._github(repo_name).require_token()
        if hosting:
            self.vercel.require_token()

    async def _load_session(self, session_id: str) -> GenerationSession:
        session = await self.generation.get_session(session_id)
        if not session.files:
            raise NothingToExport(details=f"Generation session {session_id} has no files")
        return session

    def _persist(self, session_id: str, **fields) -> Optional[DeploymentRecord]:
        # Ledger failures after an external success must not fail the request
        try:
            return self.ledger.update_deployment(session_id, **fields)
        except Exception as e:
            logger.error(f"Failed to save deployment info for session {session_id}: {str(e)}")
            return None

    async def _export(self, session_id: str, repo_name: str, is_private: bool) -> ExportResult:
        self.state = PipelineState.EXPORT_STARTED
        session = await self._load_session(session_id)
        logger.info(f"Exporting session {session_id} to GitHub repository {repo_name}")
        result = await self._github(repo_name).export_files(
            session.files,
            repo_name,
            is_private=is_private,
            description=f"Generated site: {session.title or repo_name}",
            commit_message=f"Add generated site from session {session_id}",
        )
        self.state = PipelineState.EXPORTED
        self._persist(session_id, repository_name=result.name, repository_url=result.url)
        return result

    async def export_session(self, request: ExportRequest) -> Dict[str, Any]:
        """Export a session's files to a new GitHub repository."""
        self.require_credentials(request.repo_name)
        result = await self._export(request.session_id, request.repo_name, request.is_private)
        return {
            "success": True,
            "repository": result.repository_body(),
            "filesCreated": len(result.files),
            "files": result.files,
        }

    async def provision_and_trigger(self, request: ProvisionRequest) -> PipelineResult:
        """Export, create the hosting project, and start a production deployment."""
        self.require_credentials(request.repo_name, hosting=True)
        session_id = request.session_id
        export = await self._export(session_id, request.repo_name, request.is_private)
        repository = {**export.repository_body(), "fullName": export.full_name}

        try:
            project = await self.vercel.provision_project(request.project_name or request.repo_name, export.full_name)
        except PipelineError as e:
            logger.error(f"Hosting project creation failed after export of {export.full_name}: {e.details or e.message}")
            self._persist(
                session_id,
                repository_name=export.name,
                repository_url=export.url,
                deployment_status=DeploymentStatus.FAILED,
            )
            return PipelineResult(
                PipelineOutcome.PROVISIONING_FAILED,
                502,
                {
                    "error": "Hosting project creation failed",
                    "details": "Your code was exported to GitHub. Import the repository into Vercel manually or retry.",
                    "githubSuccess": True,
                    "repository": repository,
                    "hostingError": e.details or e.message,
                },
            )
        except Exception as e:
            return self._failed_after_export(session_id, export, repository, e)

        try:
            self.state = PipelineState.PROVISIONED
            if self.settle_seconds > 0:
                logger.info(f"Waiting {self.settle_seconds}s for Vercel to link the GitHub repository...")
                await asyncio.sleep(self.settle_seconds)
            project = await self.vercel.get_project(project.id) or project

            deployment = await self.trigger.trigger_deployment(project, export.full_name, export.default_branch)
            if deployment is None:
                self.state = PipelineState.DEPLOY_FALLBACK_EXHAUSTED
                return self._partial_success(session_id, export, repository, project)
            self.state = PipelineState.DEPLOY_TRIGGERED
            return self._full_success(session_id, export, repository, project, deployment)
        except Exception as e:
            return self._failed_after_export(session_id, export, repository, e, project)

    def _failed_after_export(
        self,
        session_id: str,
        export: ExportResult,
        repository: Dict[str, Any],
        error: Exception,
        project: Optional[HostingProject] = None,
    ) -> PipelineResult:
        logger.exception(f"Deployment failed after export of {export.full_name}")
        details = error.details if isinstance(error, PipelineError) and error.details else str(error)
        fields: Dict[str, Any] = {
            "repository_name": export.name,
            "repository_url": export.url,
            "deployment_status": DeploymentStatus.FAILED,
        }
        body: Dict[str, Any] = {
            "error": "Deployment failed",
            "details": details,
            "githubSuccess": True,
            "repository": repository,
        }
        # A created project stays recorded so it can still be found and deleted
        if project is not None:
            fields.update(hosting_project_id=project.id, hosting_project_url=project.dashboard_url)
            body.update(hostingProjectSuccess=True, hostingProject=project.body())
        self._persist(session_id, **fields)
        return PipelineResult(PipelineOutcome.FAILED_AFTER_EXPORT, 500, body)

    def _partial_success(
        self, session_id: str, export: ExportResult, repository: Dict[str, Any], project: HostingProject
    ) -> PipelineResult:
        self._persist(
            session_id,
            repository_name=export.name,
            repository_url=export.url,
            hosting_project_id=project.id,
            hosting_project_url=project.dashboard_url,
            deployment_status=DeploymentStatus.PENDING,
        )
        self.state = PipelineState.PERSISTED
        return PipelineResult(
            PipelineOutcome.PARTIAL,
            200,
            {
                "partialSuccess": True,
                "githubSuccess": True,
                "hostingProjectSuccess": True,
                "deploymentSuccess": False,
                "repository": repository,
                "hostingProject": project.body(),
                "deploymentError": self.trigger.last_error or "Could not auto-trigger deployment",
                "attempts": summarize_attempts(self.trigger),
                "details": 'GitHub repo and Vercel project created successfully! Go to Vercel dashboard and click "Deploy" to start your first deployment.',
                "instructions": list(MANUAL_DEPLOY_INSTRUCTIONS),
            },
        )

    def _full_success(
        self,
        session_id: str,
        export: ExportResult,
        repository: Dict[str, Any],
        project: HostingProject,
        deployment: TriggeredDeployment,
    ) -> PipelineResult:
        self._persist(
            session_id,
            repository_name=export.name,
            repository_url=export.url,
            hosting_project_id=project.id,
            hosting_project_url=project.dashboard_url,
            deployment_url=deployment.deployment_url or project.dashboard_url,
            deployment_status=DeploymentStatus.DEPLOYED,
        )
        self.state = PipelineState.PERSISTED
        return PipelineResult(
            PipelineOutcome.SUCCESS,
            200,
            {
                "success": True,
                "message": "Successfully exported to GitHub and deployed to Vercel!",
                "repository": repository,
                "hostingProject": {**project.body(), "framework": settings.hosting_framework},
                "deployment": {
                    "id": deployment.id,
                    "url": deployment.url,
                    "readyState": deployment.state,
                    "deploymentUrl": deployment.deployment_url,
                    "inspectorUrl": deployment.inspector_url or project.dashboard_url,
                    "strategy": deployment.strategy,
                },
                "filesCreated": len(export.files),
                "note": "Deployment is building. Visit the Vercel dashboard to monitor progress.",
            },
        )

    async def delete_session(self, record: DeploymentRecord) -> Dict[str, Any]:
        """Best-effort removal of the hosting project and repository, then the ledger row.

        A failed external delete is logged and reported as False; it never
        stops the remaining steps.
        """
        deleted_hosting_project = False
        deleted_repository = False

        if record.hosting_project_id and self.vercel.token:
            try:
                deleted_hosting_project = await self.vercel.delete_project(record.hosting_project_id)
            except Exception as e:
                logger.error(f"Error deleting Vercel project {record.hosting_project_id}: {str(e)}")

        if record.repository_url:
            exporter = self.exporter or GitHubExporter()
            if exporter.token:
                try:
                    deleted_repository = await exporter.delete_repository(record.repository_url)
                except Exception as e:
                    logger.error(f"Error deleting GitHub repository {record.repository_url}: {str(e)}")

        self.ledger.delete_record(record.session_id)
        logger.info(f"Deleted session {record.session_id}")
        return {
            "success": True,
            "deletedRepository": deleted_repository,
            "deletedHostingProject": deleted_hosting_project,
        }


def summarize_attempts(trigger: DeploymentTrigger) -> List[Dict[str, Any]]:
    return [{"strategy": a.strategy, "ok": a.ok, "error": a.error} for a in trigger.attempts]
