from pydantic import BaseModel
from typing import Any, Dict, Optional


class HostingProject(BaseModel):
    id: str
    name: str
    account_id: Optional[str] = None
    dashboard_url: str
    link: Optional[Dict[str, Any]] = None

    @property
    def linked_repo_id(self) -> Optional[Any]:
        return (self.link or {}).get("repoId")

    def body(self) -> dict:
        return {"id": self.id, "name": self.name, "dashboardUrl": self.dashboard_url}


class TriggeredDeployment(BaseModel):
    id: Optional[str] = None
    url: Optional[str] = None
    state: str = "BUILDING"
    deployment_url: Optional[str] = None
    inspector_url: Optional[str] = None
    strategy: str

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], strategy: str) -> "TriggeredDeployment":
        """Normalize the differing deployment payloads of the trigger endpoints."""
        payload = payload or {}
        deployment = payload.get("deployment") if isinstance(payload.get("deployment"), dict) else payload
        aliases = deployment.get("alias") or []
        url = deployment.get("url") or (aliases[0] if aliases else None)
        return cls(
            id=deployment.get("id") or deployment.get("uid") or (payload.get("job") or {}).get("id"),
            url=url,
            state=deployment.get("readyState") or deployment.get("state") or "BUILDING",
            deployment_url=f"https://{url}" if url else None,
            inspector_url=deployment.get("inspectorUrl"),
            strategy=strategy,
        )
