"""Which files in a theme checkout the local backend should list.

Combines the project's .gitignore (gitwildmatch via pathspec) with a fixed
set of build/vendor directories and binary asset extensions.
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

import pathspec

logger = logging.getLogger(__name__)

SKIP_DIRS: FrozenSet[str] = frozenset({
    ".git", ".shopify", "node_modules", "__pycache__",
    ".venv", "venv", ".pytest_cache", ".cache", "dist", "build",
})

# Binary theme assets and generated files are never useful as text
SKIP_EXTENSIONS: FrozenSet[str] = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".ico", ".svgz",
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    ".mp4", ".webm", ".pdf", ".zip",
    ".map", ".lock", ".pyc",
})

# root -> (.gitignore mtime, rules)
_cache: Dict[str, Tuple[Optional[float], "IgnoreRules"]] = {}


@dataclass(frozen=True)
class IgnoreRules:
    spec: Optional[pathspec.PathSpec] = None

    @classmethod
    def for_directory(cls, root: str) -> "IgnoreRules":
        """Rules for a project root; re-read when .gitignore changes on disk."""
        path = os.path.join(root, ".gitignore")
        try:
            mtime: Optional[float] = os.path.getmtime(path)
        except OSError:
            mtime = None
        cached = _cache.get(root)
        if cached and cached[0] == mtime:
            return cached[1]

        spec = None
        if mtime is not None:
            try:
                with open(path, "r", encoding="utf-8", errors="replace") as f:
                    spec = pathspec.PathSpec.from_lines("gitwildmatch", f)
            except (OSError, ValueError) as e:
                logger.warning(f"Ignoring unreadable .gitignore in {root}: {e}")
        rules = cls(spec)
        _cache[root] = (mtime, rules)
        return rules

    def skips_dir(self, rel_path: str) -> bool:
        if os.path.basename(rel_path) in SKIP_DIRS:
            return True
        return bool(self.spec and self.spec.match_file(rel_path.rstrip("/") + "/"))

    def skips_file(self, rel_path: str) -> bool:
        if os.path.splitext(rel_path)[1].lower() in SKIP_EXTENSIONS:
            return True
        return bool(self.spec and self.spec.match_file(rel_path))
