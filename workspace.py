"""
Shared in-memory working set of project files.

Handlers resolve file references here, hydrate stubs on demand, and apply
mutations only after the persistence backend accepted them.
"""

import logging
import os
from typing import Iterable, List, Optional

from backend import Backend, FileContext, PersistenceError

logger = logging.getLogger(__name__)


class WorkingSet:
    """The project's files for one session, backed by a content provider/persistence."""

    def __init__(self, backend: Backend, files: Optional[List[FileContext]] = None):
        self.backend = backend
        self.files: List[FileContext] = files if files is not None else backend.list_files()

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self):
        return iter(self.files)

    def get(self, file_id: str) -> Optional[FileContext]:
        for f in self.files:
            if f.file_id == file_id:
                return f
        return None

    def resolve(self, ref: str) -> Optional[FileContext]:
        """Find a file by current path, id, file name, path suffix, or basename (in that order).

        A path wins over an id: after a rename the old path may name a new file
        while the renamed one keeps its id.
        """
        ref = (ref or "").strip()
        if not ref:
            return None
        for f in self.files:
            if f.path == ref:
                return f
        by_id = self.get(ref)
        if by_id:
            return by_id
        for f in self.files:
            if f.file_name == ref:
                return f
        suffix = "/" + ref.lstrip("/")
        for f in self.files:
            if f.path.endswith(suffix):
                return f
        base = os.path.basename(ref)
        for f in self.files:
            if f.file_name == base:
                return f
        return None

    def exists(self, path: str) -> bool:
        return any(f.path == path for f in self.files)

    async def hydrate(self, files: Iterable[FileContext]) -> List[FileContext]:
        """Load real content for stubbed entries, in place. Returns the entries
        that have real content afterwards; entries still stubbed are skipped."""
        files = list(files)
        stubs = [f.file_id for f in files if f.is_stub]
        hydrated = set()
        if stubs:
            try:
                loaded = await self.backend.hydrate(stubs)
            except Exception as e:
                logger.warning(f"Hydration of {len(stubs)} file(s) failed: {e}")
                loaded = {}
            for f in files:
                if loaded.get(f.file_id) is not None:
                    f.content = loaded[f.file_id]
                    hydrated.add(f.file_id)
        return [f for f in files if f.file_id in hydrated or not f.is_stub]

    async def read(self, f: FileContext) -> Optional[str]:
        """Return the real content of a file, or None if it cannot be loaded."""
        hydrated = await self.hydrate([f])
        return hydrated[0].content if hydrated else None

    async def apply_write(self, f: FileContext, new_content: str) -> None:
        """Persist new content, then update the in-memory copy.

        Raises PersistenceError; the in-memory copy is untouched on failure.
        """
        await self.backend.write_content(f.file_id, f.path, new_content)
        f.content = new_content

    def _new_file_id(self, path: str) -> str:
        """Ids never repeat within a session, even when a path is reused after a rename."""
        file_id, n = path, 1
        while self.get(file_id) is not None:
            n += 1
            file_id = f"{path}#{n}"
        return file_id

    async def create(self, path: str, content: str) -> FileContext:
        f = FileContext(file_id=self._new_file_id(path), path=path, content=content)
        await self.backend.write_content(f.file_id, path, content)
        self.files.append(f)
        return f

    async def delete(self, f: FileContext) -> None:
        await self.backend.delete(f.file_id, f.path)
        self.files = [x for x in self.files if x.file_id != f.file_id]

    async def rename(self, f: FileContext, new_path: str) -> None:
        if self.exists(new_path):
            raise PersistenceError(f"A file already exists at {new_path}")
        await self.backend.rename(f.file_id, f.path, new_path)
        f.path = new_path
