"""
Font import normalization for generated layout files.

Generated layouts load Geist through the ``geist`` npm package
(``import { GeistSans } from 'geist/font/sans'``), which is not part of the
exported scaffold. The rewrite moves them onto ``next/font/google`` loaders so
the exported project builds with stock Next.js. The transformation is pure and
idempotent: text without ``geist/font`` imports is returned unchanged.
"""

import logging
import re
from typing import Dict, List, NamedTuple

logger = logging.getLogger(__name__)


class FontLoader(NamedTuple):
    loader: str      # next/font/google export
    var_name: str    # module-level const holding the loaded font
    css_var: str


FONT_LOADERS: Dict[str, FontLoader] = {
    "GeistSans": FontLoader("Geist", "geistSans", "--font-geist-sans"),
    "GeistMono": FontLoader("Geist_Mono", "geistMono", "--font-geist-mono"),
}

_GEIST_IMPORT = re.compile(
    r"^[ \t]*import\s*\{([^}]*)\}\s*from\s*['\"]geist/font(?:/[\w-]+)?['\"];?[ \t]*(?:\r?\n)?",
    re.MULTILINE,
)
_GOOGLE_IMPORT = re.compile(r"import\s*\{([^}]*)\}\s*from\s*(['\"])next/font/google\2")
_ANY_IMPORT = re.compile(r"^import\s[\s\S]*?['\"][^'\"\n]+['\"];?[ \t]*$", re.MULTILINE)

LAYOUT_FILE = "app/layout.tsx"


def is_layout_file(path: str) -> bool:
    return path == LAYOUT_FILE or path.endswith("/layout.tsx")


def _parse_names(clause: str) -> Dict[str, str]:
    """Return {imported_name: local_name} for an import clause body."""
    names = {}
    for part in clause.split(","):
        part = part.strip()
        if not part:
            continue
        if " as " in part:
            imported, local = (p.strip() for p in part.split(" as ", 1))
        else:
            imported = local = part
        names[imported] = local
    return names


def normalize_fonts(source: str) -> str:
    """Rewrite ``geist/font`` imports into ``next/font/google`` loaders."""
    matches = list(_GEIST_IMPORT.finditer(source))
    if not matches:
        return source

    aliases: Dict[str, FontLoader] = {}
    for match in matches:
        for imported, local in _parse_names(match.group(1)).items():
            loader = FONT_LOADERS.get(imported)
            if loader is None:
                logger.warning(f"Unsupported geist font export: {imported}")
                continue
            aliases[local] = loader

    first_import_at = matches[0].start()
    text = _GEIST_IMPORT.sub("", source)
    if not aliases:
        return text

    needed: List[FontLoader] = []
    for loader in aliases.values():
        if loader not in needed:
            needed.append(loader)

    # Rename aliases before the loader import is written; an alias may equal a loader name
    head, tail = text[:first_import_at], text[first_import_at:]
    for local, loader in aliases.items():
        pattern = rf"\b{re.escape(local)}\b"
        head = re.sub(pattern, loader.var_name, head)
        tail = re.sub(pattern, loader.var_name, tail)
    text = head + tail
    first_import_at = len(head)

    google = _GOOGLE_IMPORT.search(text)
    if google:
        present = set(_parse_names(google.group(1)).values())
        missing = [f.loader for f in needed if f.loader not in present]
        if missing:
            names = [n.strip() for n in google.group(1).split(",") if n.strip()] + missing
            rebuilt = f"import {{ {', '.join(names)} }} from {google.group(2)}next/font/google{google.group(2)}"
            text = text[:google.start()] + rebuilt + text[google.end():]
    else:
        loaders = ", ".join(f.loader for f in needed)
        text = text[:first_import_at] + f'import {{ {loaders} }} from "next/font/google"\n' + text[first_import_at:]

    declarations = [
        f'const {f.var_name} = {f.loader}({{ subsets: ["latin"], variable: "{f.css_var}" }})'
        for f in needed
        if not re.search(rf"\bconst\s+{f.var_name}\b", text)
    ]
    if declarations:
        imports = list(_ANY_IMPORT.finditer(text))
        insert_at = imports[-1].end() if imports else 0
        block = "\n\n" + "\n".join(declarations) if imports else "\n".join(declarations) + "\n\n"
        text = text[:insert_at] + block + text[insert_at:]

    logger.info(f"Normalized font imports: {', '.join(f.loader for f in needed)}")
    return text
