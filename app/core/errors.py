"""
Domain errors raised by the export/provisioning/deployment pipeline.

Each error carries the HTTP status it maps to and renders as an
``{"error": ..., "details": ...}`` body (see the handler registered in app.main).
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    status_code: int = 500
    error: str = "Pipeline request failed"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
        self.message = message or self.error
        self.details = details
        self.extra = extra or {}
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra)
        return body


class CredentialsMissing(PipelineError):
    """A required external-service token is not configured. Never retried."""
    status_code = 500

    def __init__(self, service: str, env_var: str):
        self.service = service
        self.env_var = env_var
        super().__init__(
            f"{service} token not configured",
            details=f"Please add {env_var} to .env",
        )


class RepoAlreadyExists(PipelineError):
    status_code = 400

    def __init__(self, repo_name: str):
        self.repo_name = repo_name
        super().__init__(
            "Repository already exists",
            details=f"A repository named '{repo_name}' already exists. Please choose a different name.",
        )


class UpstreamRequestFailed(PipelineError):
    status_code = 500

    def __init__(self, service: str, message: str, upstream_status: Optional[int] = None):
        self.service = service
        self.upstream_status = upstream_status
        super().__init__(f"{service} request failed", details=message)


class NothingToExport(PipelineError):
    status_code = 400
    error = "No files found in this session"


class NotFound(PipelineError):
    status_code = 404
    error = "Session not found"


class Forbidden(PipelineError):
    status_code = 403
    error = "You do not have permission to act on this session"


class LedgerOrderingError(PipelineError):
    """A ledger update would break the export -> provision -> deploy field ordering."""
    status_code = 500
    error = "Invalid deployment record update"


def upstream_message(payload: Any, default: str = "Unknown error") -> str:
    """Pull a human-readable message out of an upstream JSON error body.

    Handles the GitHub shape ``{"message": ...}``, the Vercel/Bitbucket shape
    ``{"error": {"message": ...}}`` and plain ``{"error": "..."}``.
    """
    if not isinstance(payload, dict):
        return default
    error = payload.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if payload.get("message"):
        return str(payload["message"])
    return default


def json_body(response: Any) -> Any:
    """Decoded JSON body of an upstream response, or None when it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return None
