from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    repo_name: str = Field(alias="repoName", min_length=1)
    is_private: bool = Field(default=True, alias="isPrivate")


class BitbucketExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    repo_name: str = Field(alias="repoName", min_length=1)
    workspace: str = Field(min_length=1)


class ExportResult(BaseModel):
    """Outcome of a successful export to a source-control host."""
    name: str
    full_name: str
    owner: Optional[str] = None
    url: str
    clone_url: Optional[str] = None
    default_branch: str = "main"
    commit_sha: Optional[str] = None
    files: List[str] = []

    def repository_body(self) -> dict:
        return {
            "name": self.name,
            "url": self.url,
            "cloneUrl": self.clone_url,
            "branch": self.default_branch,
        }
