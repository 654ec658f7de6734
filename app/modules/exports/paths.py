import logging

logger = logging.getLogger(__name__)

NESTED_UI_DIR = "components/ui/ui/"
UI_DIR = "components/ui/"

# Segments that may legitimately repeat (e.g. "../../lib")
_REPEATABLE_SEGMENTS = {"", ".", ".."}


def collapse_nested_ui(path: str) -> str:
    """Collapse the generator's ``components/ui/ui/`` nesting into ``components/ui/``."""
    while NESTED_UI_DIR in path:
        path = path.replace(NESTED_UI_DIR, UI_DIR)
    return path


def dedupe_segments(path: str) -> str:
    """Drop a path segment when it repeats the segment right before it."""
    kept = []
    for segment in path.split("/"):
        if kept and segment == kept[-1] and segment not in _REPEATABLE_SEGMENTS:
            continue
        kept.append(segment)
    return "/".join(kept)


def normalize_path(path: str) -> str:
    """Repair a generated file path before it is committed.

    The nested ``ui`` collapse runs first, then generic duplicate-segment
    removal. ``normalize_path(normalize_path(p)) == normalize_path(p)``.
    """
    fixed = dedupe_segments(collapse_nested_ui(path))
    if fixed != path:
        logger.info(f"Fixed nested path: {path} -> {fixed}")
    else:
        logger.debug(f"Path: {fixed}")
    return fixed
