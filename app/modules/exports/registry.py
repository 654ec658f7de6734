"""
Client for the public shadcn/ui component registry.

Fetches canonical implementations of UI primitives that generated files import
from ``@/components/ui/<name>`` but that the generator did not emit.
"""

import asyncio
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

KNOWN_COMPONENTS = frozenset({
    "accordion", "alert", "alert-dialog", "aspect-ratio", "avatar", "badge",
    "button", "calendar", "card", "checkbox", "collapsible", "command",
    "context-menu", "dialog", "dropdown-menu", "form", "hover-card", "input",
    "label", "menubar", "navigation-menu", "pagination", "popover", "progress",
    "radio-group", "scroll-area", "select", "separator", "sheet", "skeleton",
    "slider", "sonner", "switch", "table", "tabs", "textarea", "toast",
    "toggle", "toggle-group", "tooltip",
})

UI_IMPORT_PATTERN = re.compile(r"""from\s+['"]@/components/ui/([\w-]+)['"]""")


def detect_ui_components(contents: Iterable[str]) -> List[str]:
    """Names of UI primitives imported from ``@/components/ui/`` in first-seen order."""
    found: List[str] = []
    for content in contents:
        for name in UI_IMPORT_PATTERN.findall(content or ""):
            if name not in found:
                found.append(name)
    return found


def component_to_files(component: Dict[str, Any]) -> Dict[str, str]:
    """Convert a registry item into ``{path: content}``.

    Registry paths such as ``ui/button.tsx`` are placed under ``components/ui/``;
    the resulting ``components/ui/ui/`` nesting is repaired by path normalization.
    """
    files: Dict[str, str] = {}
    for entry in component.get("files") or []:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name") or entry.get("path") or ""
        content = entry.get("content") or entry.get("source") or ""
        if not name or not content:
            logger.warning(f"Invalid registry file entry for {component.get('name')}")
            continue
        path = name if name.startswith("components/") else f"components/ui/{name}"
        files[path] = content
    return files


def component_dependencies(component: Dict[str, Any]) -> List[str]:
    return list(component.get("dependencies") or [])


class ComponentRegistry:
    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or settings.component_registry_url).rstrip("/")
        self.transport = transport

    def _candidate_urls(self, name: str) -> List[str]:
        return [
            f"{self.base_url}/r/styles/default/{name}.json",
            f"{self.base_url}/registry/styles/default/{name}.json",
        ]

    async def fetch_component(self, client: httpx.AsyncClient, name: str) -> Optional[Dict[str, Any]]:
        """Fetch one component; None when unknown or every URL fails."""
        if name not in KNOWN_COMPONENTS:
            logger.warning(f"Component not found in registry map: {name}")
            return None
        for url in self._candidate_urls(name):
            try:
                response = await client.get(url)
                if not response.is_success:
                    continue
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.debug(f"Registry request failed for {url}: {e}")
                continue
            if not isinstance(data, dict):
                logger.debug(f"Unexpected registry payload from {url}")
                continue
            logger.info(f"Fetched {name} from component registry ({len(data.get('files') or [])} files)")
            return data
        logger.error(f"Failed to fetch {name} from all registry URLs")
        return None

    async def fetch_components(self, names: List[str]) -> Dict[str, Dict[str, Any]]:
        """Fetch several components concurrently; missing ones are left out."""
        if not names:
            return {}
        logger.info(f"Fetching {len(names)} components from registry")
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=self.transport) as client:
            results = await asyncio.gather(*(self.fetch_component(client, name) for name in names))
        return {name: component for name, component in zip(names, results) if component}
