"""
Backend abstraction for file content and persistence.
Supports an in-memory project (default for tests/embedding) and a local directory.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

# Exactly the shape make_stub produces, e.g. "[4821 chars - not loaded]". Real
# content may start with "[" (JSON arrays such as config/settings_schema.json).
_STUB_RE = re.compile(r"\[\d+ chars - not loaded\]")


def is_stub(content: Optional[str]) -> bool:
    """True if content is a not-yet-hydrated placeholder."""
    return content is None or _STUB_RE.fullmatch(content) is not None


def make_stub(size: int) -> str:
    return f"[{size} chars - not loaded]"


def file_type_for(path: str) -> str:
    """Derive a file type label from the extension (liquid, css, javascript, ...)."""
    _, ext = os.path.splitext(path)
    ext = ext.lstrip(".").lower()
    return {
        "js": "javascript",
        "ts": "typescript",
        "md": "markdown",
        "yml": "yaml",
    }.get(ext, ext or "other")


@dataclass
class FileContext:
    """One file of the in-memory working set."""
    file_id: str
    path: str
    file_type: str = ""
    content: str = ""

    def __post_init__(self) -> None:
        if not self.file_type:
            self.file_type = file_type_for(self.path)

    @property
    def file_name(self) -> str:
        return os.path.basename(self.path)

    @property
    def is_stub(self) -> bool:
        return is_stub(self.content)


class PersistenceError(Exception):
    """Raised by a backend when a write/delete/rename cannot be stored."""
    pass


class ContentProvider(ABC):
    """Loads full file content for stubbed entries."""

    @abstractmethod
    async def hydrate(self, file_ids: List[str]) -> Dict[str, str]:
        """Return {file_id: content} for the ids that could be loaded.

        Implementations must not raise for individual failures; missing ids
        simply stay stubs.
        """


class Persistence(ABC):
    """Durable storage for file mutations."""

    @abstractmethod
    async def write_content(self, file_id: str, path: str, content: str) -> None:
        """Store new content. Raises PersistenceError on failure."""

    @abstractmethod
    async def delete(self, file_id: str, path: str) -> None:
        """Delete a file. Raises PersistenceError on failure."""

    @abstractmethod
    async def rename(self, file_id: str, old_path: str, new_path: str) -> None:
        """Move a file. Raises PersistenceError on failure."""


class Backend(ContentProvider, Persistence):
    """A content provider that also persists mutations."""

    @abstractmethod
    def list_files(self) -> List[FileContext]:
        """Return the project's files (content may be stubs)."""


# ============================================================
# In-memory Backend
# ============================================================

class InMemoryBackend(Backend):
    """Backend holding all content in a dict. Files are listed as stubs
    so hydration paths are exercised exactly as with real storage."""

    def __init__(self, files: Optional[Dict[str, str]] = None, *, stubbed: bool = True):
        self._files: Dict[str, str] = {}
        self._paths: Dict[str, str] = {}
        self._stubbed = stubbed
        self.writes: List[str] = []
        self.fail_writes: Optional[str] = None
        for path, content in (files or {}).items():
            self.add(path, content)

    def add(self, path: str, content: str, file_id: Optional[str] = None) -> str:
        if file_id is None:
            n = len(self._paths) + 1
            while f"f{n}" in self._paths:
                n += 1
            file_id = f"f{n}"
        self._paths[file_id] = path
        self._files[file_id] = content
        return file_id

    def list_files(self) -> List[FileContext]:
        out = []
        for file_id, path in self._paths.items():
            content = self._files[file_id]
            out.append(FileContext(
                file_id=file_id,
                path=path,
                content=make_stub(len(content)) if self._stubbed else content,
            ))
        return out

    def content_of(self, file_id: str) -> Optional[str]:
        return self._files.get(file_id)

    async def hydrate(self, file_ids: List[str]) -> Dict[str, str]:
        return {fid: self._files[fid] for fid in file_ids if fid in self._files}

    async def write_content(self, file_id: str, path: str, content: str) -> None:
        if self.fail_writes:
            raise PersistenceError(self.fail_writes)
        if file_id not in self._paths:
            self._paths[file_id] = path
        self._files[file_id] = content
        self.writes.append(file_id)

    async def delete(self, file_id: str, path: str) -> None:
        if self.fail_writes:
            raise PersistenceError(self.fail_writes)
        if file_id not in self._paths:
            raise PersistenceError(f"No such file: {path}")
        del self._paths[file_id]
        del self._files[file_id]

    async def rename(self, file_id: str, old_path: str, new_path: str) -> None:
        if self.fail_writes:
            raise PersistenceError(self.fail_writes)
        if file_id not in self._paths:
            raise PersistenceError(f"No such file: {old_path}")
        self._paths[file_id] = new_path


# ============================================================
# Local Backend
# ============================================================

class LocalBackend(Backend):
    """Backend that operates on a project directory on the local filesystem.
    File ids are the relative paths the files were listed or created under."""

    def __init__(self, working_directory: str = "."):
        self._working_directory = os.path.abspath(working_directory)
        # file_id -> current relative path, for files renamed or created this session
        self._paths: Dict[str, str] = {}

    @property
    def working_directory(self) -> str:
        return self._working_directory

    def resolve_path(self, path: str) -> str:
        """Resolve a path relative to the working directory."""
        if os.path.isabs(path):
            return path
        return os.path.normpath(os.path.join(self._working_directory, path))

    def _ensure_under_working(self, resolved: str) -> None:
        real = os.path.abspath(resolved)
        wd = self._working_directory
        if real != wd and not real.startswith(wd + os.sep):
            raise PersistenceError(f"Path escapes working directory: {resolved!r}")

    def _walk(self) -> Iterable[str]:
        from tools.gitignore import IgnoreRules
        rules = IgnoreRules.for_directory(self._working_directory)
        for root, dirs, files in os.walk(self._working_directory):
            rel_root = os.path.relpath(root, self._working_directory)
            rel_root = "" if rel_root == "." else rel_root
            dirs[:] = sorted(
                d for d in dirs
                if not rules.skips_dir(os.path.join(rel_root, d).replace(os.sep, "/"))
            )
            for name in sorted(files):
                rel = os.path.join(rel_root, name) if rel_root else name
                rel = rel.replace(os.sep, "/")
                if not rules.skips_file(rel):
                    yield rel

    def list_files(self) -> List[FileContext]:
        out = []
        for rel in self._walk():
            try:
                size = os.path.getsize(self.resolve_path(rel))
            except OSError:
                size = 0
            out.append(FileContext(file_id=rel, path=rel, content=make_stub(size)))
        return out

    async def hydrate(self, file_ids: List[str]) -> Dict[str, str]:
        loaded: Dict[str, str] = {}
        for fid in file_ids:
            full = self.resolve_path(self._paths.get(fid, fid))
            try:
                self._ensure_under_working(full)
                with open(full, "r", encoding="utf-8", errors="replace") as f:
                    loaded[fid] = f.read()
            except (OSError, PersistenceError) as e:
                logger.warning(f"Hydration failed for {fid}: {e}")
        return loaded

    async def write_content(self, file_id: str, path: str, content: str) -> None:
        full = self.resolve_path(path)
        self._ensure_under_working(full)
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise PersistenceError(str(e)) from e
        self._paths[file_id] = path
        logger.info(f"Wrote {path} ({len(content)} chars)")

    async def delete(self, file_id: str, path: str) -> None:
        full = self.resolve_path(path)
        self._ensure_under_working(full)
        try:
            os.remove(full)
        except OSError as e:
            raise PersistenceError(str(e)) from e
        self._paths.pop(file_id, None)

    async def rename(self, file_id: str, old_path: str, new_path: str) -> None:
        src = self.resolve_path(old_path)
        dst = self.resolve_path(new_path)
        self._ensure_under_working(src)
        self._ensure_under_working(dst)
        try:
            os.makedirs(os.path.dirname(dst), exist_ok=True)
            os.replace(src, dst)
        except OSError as e:
            raise PersistenceError(str(e)) from e
        self._paths[file_id] = new_path
