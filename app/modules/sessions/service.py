from supabase import Client
from app.core.errors import LedgerOrderingError
from app.modules.sessions.events import DeploymentEventBus, get_event_bus
from app.modules.sessions.schemas import DeploymentRecord, DeploymentStatus
from app.modules.hosting.vercel import dashboard_url, production_url
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import logging
import re

logger = logging.getLogger(__name__)

TABLE = "deployment_records"

UPDATABLE_FIELDS = (
    "repository_name",
    "repository_url",
    "hosting_project_id",
    "hosting_project_url",
    "deployment_url",
    "deployment_status",
)

_DASHBOARD_URL = re.compile(r"https?://vercel\.com/[^/]+/([^/?]+)")
_PRODUCTION_URL = re.compile(r"https?://([^.]+)\.vercel\.app")


class LedgerService:
    """Ownership and deployment bookkeeping, one row per generation session."""

    def __init__(self, supabase: Client, events: Optional[DeploymentEventBus] = None):
        self.supabase = supabase
        self.events = events or get_event_bus()

    def _publish(self, session_id: str, event_type: str, record: Optional[DeploymentRecord] = None):
        event: Dict[str, Any] = {"type": event_type, "sessionId": session_id}
        if record is not None:
            event["deployment"] = record.deployment_info()
        self.events.publish(session_id, event)

    def get_record(self, session_id: str) -> Optional[DeploymentRecord]:
        """Record for ``session_id`` or None when there is none."""
        try:
            result = self.supabase.table(TABLE)\
                .select("*")\
                .eq("session_id", session_id)\
                .maybe_single()\
                .execute()
        except Exception as e:
            logger.error(f"Error getting deployment record: {str(e)}")
            raise
        if result is None or not result.data:
            return None
        return DeploymentRecord(**result.data)

    def ensure_record(self, session_id: str, owner_id: Optional[str] = None, website_name: Optional[str] = None) -> DeploymentRecord:
        """Insert the session's row unless one exists; a concurrent duplicate insert is a no-op."""
        try:
            self.supabase.table(TABLE).upsert(
                {
                    "session_id": session_id,
                    "owner_id": owner_id,
                    "website_name": website_name,
                    "deployment_status": DeploymentStatus.UNSET.value,
                },
                on_conflict="session_id",
                ignore_duplicates=True,
            ).execute()
        except Exception as e:
            logger.error(f"Error creating deployment record: {str(e)}")
            raise
        record = self.get_record(session_id)
        if record is None:
            raise RuntimeError(f"Deployment record for session {session_id} was not persisted")
        return record

    def update_deployment(self, session_id: str, **fields: Any) -> Optional[DeploymentRecord]:
        """Set only the given non-None fields and stamp ``deployed_at``.

        Omitted fields are never cleared. Writing a hosting project before a
        repository URL exists, or ``deployed`` without a deployment URL, raises
        LedgerOrderingError.
        """
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown deployment fields: {sorted(unknown)}")
        update_data: Dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
        status = update_data.get("deployment_status")
        if isinstance(status, DeploymentStatus):
            update_data["deployment_status"] = status.value

        needs_repo = "hosting_project_id" in update_data and "repository_url" not in update_data
        needs_url = update_data.get("deployment_status") == DeploymentStatus.DEPLOYED.value and "deployment_url" not in update_data
        if needs_repo or needs_url:
            current = self.get_record(session_id)
            if needs_repo and not (current and current.repository_url):
                raise LedgerOrderingError(details="hosting_project_id requires repository_url")
            if needs_url and not (current and current.deployment_url):
                raise LedgerOrderingError(details="deployed status requires deployment_url")

        update_data["deployed_at"] = datetime.now(timezone.utc).isoformat()
        try:
            result = self.supabase.table(TABLE)\
                .update(update_data)\
                .eq("session_id", session_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error updating deployment record: {str(e)}")
            raise

        if result.data:
            record = DeploymentRecord(**result.data[0])
        else:
            # Empty response can happen (e.g. PostgREST returning=minimal); reread
            record = self.get_record(session_id)
        if record is not None:
            self._publish(session_id, "deployment.updated", record)
        return record

    def list_records(self, owner_id: Optional[str] = None) -> List[DeploymentRecord]:
        """Records newest first, optionally limited to one owner."""
        try:
            query = self.supabase.table(TABLE).select("*")
            if owner_id is not None:
                query = query.eq("owner_id", owner_id)
            result = query.order("created_at", desc=True).execute()
        except Exception as e:
            logger.error(f"Error listing deployment records: {str(e)}")
            raise
        return [DeploymentRecord(**row) for row in result.data or []]

    def delete_record(self, session_id: str) -> None:
        try:
            self.supabase.table(TABLE).delete().eq("session_id", session_id).execute()
        except Exception as e:
            logger.error(f"Error deleting deployment record: {str(e)}")
            raise
        self._publish(session_id, "deployment.deleted")

    def repair_hosting_urls(self, team_slug: str) -> List[Dict[str, Any]]:
        """Rewrite stored hosting URLs to the production domain and team dashboard format.

        The project name is taken from the dashboard URL, then the deployment
        URL, then the repository name. Returns the changes made.
        """
        changes = []
        records = [r for r in self.list_records() if r.hosting_project_id]
        logger.info(f"Found {len(records)} deployments to check")
        for record in records:
            project_name = _project_name_from(record)
            if not project_name:
                logger.warning(f"Could not determine project name for session {record.session_id}")
                continue
            new_deployment_url = production_url(project_name)
            new_project_url = dashboard_url(team_slug, project_name)
            if record.deployment_url == new_deployment_url and record.hosting_project_url == new_project_url:
                continue
            try:
                self.supabase.table(TABLE)\
                    .update({"deployment_url": new_deployment_url, "hosting_project_url": new_project_url})\
                    .eq("session_id", record.session_id)\
                    .execute()
            except Exception as e:
                logger.error(f"Error repairing URLs for session {record.session_id}: {str(e)}")
                raise
            changes.append({
                "sessionId": record.session_id,
                "oldUrls": {"deployment": record.deployment_url, "project": record.hosting_project_url},
                "newUrls": {"deployment": new_deployment_url, "project": new_project_url},
            })
            logger.info(f"Updated URLs for session {record.session_id}")
        return changes


def _project_name_from(record: DeploymentRecord) -> Optional[str]:
    if record.hosting_project_url:
        match = _DASHBOARD_URL.match(record.hosting_project_url)
        if match:
            return match.group(1)
    if record.deployment_url:
        match = _PRODUCTION_URL.match(record.deployment_url)
        if match:
            return match.group(1)
    return record.repository_name
