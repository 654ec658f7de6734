import logging
from typing import Dict, Iterable, List, Optional, Set

from app.modules.exports.fallback_components import FALLBACK_DEPENDENCIES, get_fallback_component
from app.modules.exports.fonts import is_layout_file, normalize_fonts
from app.modules.exports.paths import normalize_path
from app.modules.exports.registry import (
    ComponentRegistry,
    component_dependencies,
    component_to_files,
    detect_ui_components,
)
from app.modules.exports.scaffold import STATIC_FILES, render_package_json
from app.modules.generation.schemas import GeneratedFile

logger = logging.getLogger(__name__)


class TemplateFiller:
    """Supplies the scaffold and UI primitive files the generator left out."""

    def __init__(self, registry: Optional[ComponentRegistry] = None, project_name: str = "generated-site"):
        self.registry = registry or ComponentRegistry()
        self.project_name = project_name

    async def fill_missing(self, existing_paths: Iterable[str], files: List[GeneratedFile]) -> Dict[str, str]:
        """Return ``{path: content}`` for every file missing from ``existing_paths``."""
        existing = {normalize_path(p) for p in existing_paths}
        filled: Dict[str, str] = {}
        dependencies: Set[str] = set()

        required = detect_ui_components(f.content for f in files)
        missing = [name for name in required if f"components/ui/{name}.tsx" not in existing]
        if missing:
            logger.info(f"Detected missing UI components: {missing}")
        components = await self.registry.fetch_components(missing)

        for name in missing:
            component = components.get(name)
            component_files = component_to_files(component) if component else {}
            if component_files:
                filled.update(component_files)
                dependencies.update(component_dependencies(component))
                logger.info(f"Including registry component: {name} ({len(component_files)} files)")
                continue
            fallback = get_fallback_component(name)
            if fallback:
                filled[f"components/ui/{name}.tsx"] = fallback
                dependencies.update(FALLBACK_DEPENDENCIES.get(name, []))
                reason = "registry returned no files" if component else "registry unavailable"
                logger.warning(f"Using fallback for: {name} ({reason})")
            else:
                logger.warning(f"No fallback available for: {name}")

        if "package.json" not in existing:
            filled["package.json"] = render_package_json(self.project_name, dependencies)
        elif dependencies:
            logger.info(f"package.json provided by generator; not adding {sorted(dependencies)}")

        for path, content in STATIC_FILES.items():
            if path not in existing:
                filled[path] = content
        return filled


async def build_export_tree(files: List[GeneratedFile], filler: Optional[TemplateFiller] = None) -> Dict[str, str]:
    """Final ``{normalized_path: content}`` to commit.

    Layout files are font-normalized; filler output never replaces a generated file.
    """
    tree: Dict[str, str] = {}
    for f in files:
        path = normalize_path(f.path)
        tree[path] = normalize_fonts(f.content) if is_layout_file(path) else f.content

    if filler is not None:
        extra = await filler.fill_missing([f.path for f in files], files)
        for path, content in extra.items():
            tree.setdefault(normalize_path(path), content)
        logger.info(f"Exporting {len(files)} generated files + {len(tree) - len({normalize_path(f.path) for f in files})} template files")
    return tree
