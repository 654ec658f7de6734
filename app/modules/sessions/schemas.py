from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class DeploymentStatus(str, Enum):
    UNSET = "unset"
    PENDING = "pending"
    DEPLOYED = "deployed"
    FAILED = "failed"


class DeploymentRecord(BaseModel):
    session_id: str
    owner_id: Optional[str] = None
    website_name: Optional[str] = None
    repository_name: Optional[str] = None
    repository_url: Optional[str] = None
    hosting_project_id: Optional[str] = None
    hosting_project_url: Optional[str] = None
    deployment_url: Optional[str] = None
    deployment_status: DeploymentStatus = DeploymentStatus.UNSET
    deployed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def deployment_info(self) -> dict:
        return {
            "sessionId": self.session_id,
            "websiteName": self.website_name,
            "repositoryName": self.repository_name,
            "repositoryUrl": self.repository_url,
            "hostingProjectId": self.hosting_project_id,
            "hostingProjectUrl": self.hosting_project_url,
            "deploymentUrl": self.deployment_url,
            "deploymentStatus": self.deployment_status.value,
            "deployedAt": self.deployed_at.isoformat() if self.deployed_at else None,
        }


class SessionRegister(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    website_name: Optional[str] = Field(default=None, alias="websiteName")
