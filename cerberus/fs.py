from typing import List, Optional

from cerberus import commands
from cerberus.config import DEFAULT_SEARCH_DEPTH, MAX_SEARCH_DEPTH, PREVIEW_LINES
from cerberus.errors import ExecutionFailedError, NotFoundError, ValidationError
from cerberus.models import KIND_FILE, FileSystemEntry, FileSystemListing
from cerberus.parsers import merge_paths, parse_ls, parse_path_list, parse_stat
from cerberus.sanitize import canonical_path
from cerberus.ssh import RemoteSession, SessionDirectory
from cerberus.utils import clamp_int

MISSING_PATH_MARKERS = ("No such file or directory", "cannot access")


def _stat(session: RemoteSession, path: str) -> Optional[FileSystemEntry]:
    result = session.run(commands.stat_entry(path))
    if not result.ok:
        return None
    return parse_stat(result.stdout, path)


def _require(session: RemoteSession, path: str) -> FileSystemEntry:
    entry = _stat(session, path)
    if entry is None:
        raise NotFoundError(f"path not found: {path}")
    return entry


def _stat_all(session: RemoteSession, paths: List[str]) -> List[FileSystemEntry]:
    # Paths can vanish between enumeration and stat; those are dropped.
    entries = []
    for path in paths:
        entry = _stat(session, path)
        if entry is not None:
            entries.append(entry)
    return entries


class FileSystemService:
    def __init__(self, directory: SessionDirectory):
        self.directory = directory

    def list(
        self,
        session_id: str,
        path: str,
        recursive: bool = False,
        include_hidden: bool = False,
    ) -> FileSystemListing:
        root = canonical_path(path)
        session = self.directory.get(session_id)

        if recursive:
            _require(session, root)
            found = session.execute(commands.find_entries(root, include_hidden=include_hidden), check=False)
            entries = _stat_all(session, [p for p in parse_path_list(found, root) if p != root])
            return FileSystemListing(path=root, entries=entries, recursive=True)

        try:
            output = session.execute(commands.list_directory(root, include_hidden=include_hidden))
        except ExecutionFailedError as exc:
            if exc.mentions(*MISSING_PATH_MARKERS):
                raise NotFoundError(f"path not found: {root}")
            raise
        return FileSystemListing(path=root, entries=parse_ls(output, root), recursive=False)

    def details(self, session_id: str, path: str) -> FileSystemEntry:
        target = canonical_path(path)
        session = self.directory.get(session_id)
        entry = _require(session, target)
        if entry.kind != KIND_FILE:
            return entry

        mime = session.run(commands.mime_type(target))
        if mime.ok and mime.stdout.strip():
            entry.mime_type = mime.stdout.strip()
        if entry.mime_type and entry.mime_type.startswith("text/"):
            head = session.run(commands.preview(target, PREVIEW_LINES))
            if head.ok:
                entry.preview = head.stdout
        return entry

    def search(
        self,
        session_id: str,
        path: str,
        pattern: str,
        max_depth: Optional[int] = None,
    ) -> List[FileSystemEntry]:
        """Entries under ``path`` whose name or content matches ``pattern``."""
        if not pattern:
            raise ValidationError("search pattern is required")
        root = canonical_path(path)
        depth = clamp_int(max_depth, DEFAULT_SEARCH_DEPTH, 1, MAX_SEARCH_DEPTH)
        session = self.directory.get(session_id)
        _require(session, root)

        by_name = session.execute(commands.search_by_name(root, pattern, depth), check=False)
        by_content = session.execute(commands.search_by_content(root, pattern, depth), check=False)
        paths = merge_paths(parse_path_list(by_name, root), parse_path_list(by_content, root))
        return _stat_all(session, paths)
