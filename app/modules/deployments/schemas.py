from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class ProvisionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    repo_name: str = Field(alias="repoName", min_length=1)
    project_name: Optional[str] = Field(default=None, alias="projectName")
    is_private: bool = Field(default=True, alias="isPrivate")


class DeleteSessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    deleted_repository: bool = Field(serialization_alias="deletedRepository")
    deleted_hosting_project: bool = Field(serialization_alias="deletedHostingProject")


class RepairUrlsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_slug: Optional[str] = Field(default=None, alias="teamSlug")
