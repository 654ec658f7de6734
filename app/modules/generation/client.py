import logging
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.errors import CredentialsMissing, NotFound, UpstreamRequestFailed, json_body, upstream_message
from app.modules.generation.schemas import GeneratedFile, GenerationSession

logger = logging.getLogger(__name__)


def parse_files(raw_files: List[Dict[str, Any]]) -> List[GeneratedFile]:
    """Map generation API file entries onto GeneratedFile.

    Entries without a path get ``file-<index>.<lang>``.
    """
    files = []
    for index, raw in enumerate(raw_files or []):
        meta = raw.get("meta") or {}
        path = meta.get("file") or raw.get("name") or f"file-{index}.{raw.get('lang') or 'txt'}"
        content = raw.get("source")
        if content is None:
            content = raw.get("content") or ""
        files.append(GeneratedFile(path=path, content=content))
    return files


class GenerationClient:
    """Reads chats (generation sessions) from the v0 API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.v0_api_key
        self.base_url = (base_url or settings.v0_api_url).rstrip("/")
        self.transport = transport

    async def get_session(self, session_id: str) -> GenerationSession:
        if not self.api_key:
            raise CredentialsMissing("Generation API", "V0_API_KEY")
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=self.transport) as client:
            response = await client.get(
                f"{self.base_url}/chats/{session_id}",
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        if response.status_code == 404:
            raise NotFound("Chat not found", details=f"Generation session {session_id} does not exist")
        if not response.is_success:
            raise UpstreamRequestFailed("Generation API", upstream_message(json_body(response)), response.status_code)
        data = response.json()
        files = parse_files(data.get("files") or [])
        logger.info(f"Found {len(files)} generated files for session {session_id}")
        return GenerationSession(id=data.get("id") or session_id, title=data.get("title") or data.get("name"), files=files)
