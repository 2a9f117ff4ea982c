"""
Namespace adapter: the narrow filesystem surface the coordinator needs.

Two implementations:
- ArrowNamespace: any pyarrow filesystem (local disk, hdfs://, s3://, ...)
- MemoryNamespace: an in-memory directory tree used by the test suite

Paths handed to an adapter are the caller's own strings (a local path or a
URI rooted at the same filesystem the adapter was opened for).
"""

from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass
from typing import Iterable, Protocol
from urllib.parse import urlsplit

import pyarrow.fs as pafs
import structlog

log = structlog.get_logger()


@dataclass(frozen=True)
class NamespaceEntry:
    name: str
    is_dir: bool


class IndexNamespace(Protocol):
    def exists(self, path: str) -> bool: ...

    def make_dirs(self, path: str) -> None: ...

    def list_children(self, path: str) -> list[NamespaceEntry]: ...

    def count_matching(self, path: str, fragment: str) -> int: ...


def join_path(base: str, name: str) -> str:
    return f"{str(base).rstrip('/')}/{name}"


def _is_uri(path: str) -> bool:
    return "://" in str(path)


def normalize_root(path: str) -> str:
    """
    Normalize a root path for use as a key prefix.

    URIs keep their scheme/authority; local paths become absolute.
    """
    p = str(path or "").strip()
    if not p:
        raise ValueError("Empty root path")
    if _is_uri(p):
        return p.rstrip("/")
    return os.path.abspath(p)


class ArrowNamespace:
    """
    IndexNamespace backed by a `pyarrow.fs.FileSystem`.

    `uri_prefix` is the scheme+authority (e.g. "hdfs://namenode:8020") stripped
    from incoming paths before they reach the filesystem.
    """

    def __init__(self, filesystem: pafs.FileSystem, *, uri_prefix: str = "") -> None:
        self._fs = filesystem
        self._uri_prefix = str(uri_prefix or "").rstrip("/")

    @property
    def filesystem(self) -> pafs.FileSystem:
        return self._fs

    def _resolve(self, path: str) -> str:
        p = str(path)
        if self._uri_prefix and p.startswith(self._uri_prefix):
            p = p[len(self._uri_prefix):] or "/"
        elif _is_uri(p):
            raise ValueError(f"Path {path!r} is not on filesystem {self._uri_prefix or 'local'!r}")
        return p

    def exists(self, path: str) -> bool:
        info = self._fs.get_file_info(self._resolve(path))
        return info.type != pafs.FileType.NotFound

    def make_dirs(self, path: str) -> None:
        self._fs.create_dir(self._resolve(path), recursive=True)

    def list_children(self, path: str) -> list[NamespaceEntry]:
        selector = pafs.FileSelector(self._resolve(path), recursive=False)
        infos = self._fs.get_file_info(selector)
        return [NamespaceEntry(name=i.base_name, is_dir=(i.type == pafs.FileType.Directory)) for i in infos]

    def count_matching(self, path: str, fragment: str) -> int:
        frag = str(fragment)
        return sum(1 for e in self.list_children(path) if frag in e.name)


def open_namespace(uri_or_path: str) -> tuple[ArrowNamespace, str]:
    """
    Resolve a local path or filesystem URI into (namespace, normalized root).
    """
    root = normalize_root(uri_or_path)
    if not _is_uri(root):
        return ArrowNamespace(pafs.LocalFileSystem()), root
    filesystem, fs_path = pafs.FileSystem.from_uri(root)
    parts = urlsplit(root)
    # Bucket-style filesystems (s3://bucket/key) keep the authority in the path.
    prefix = f"{parts.scheme}://{parts.netloc}" if fs_path.startswith("/") else f"{parts.scheme}://"
    log.debug("fs.open_namespace", uri=root, fs_type=filesystem.type_name, prefix=prefix)
    return ArrowNamespace(filesystem, uri_prefix=prefix), root


class MemoryNamespace:
    """
    In-memory IndexNamespace.

    Directories and files are tracked by absolute POSIX-style path; creating
    an entry creates all of its parents.
    """

    def __init__(self, *, dirs: Iterable[str] = (), files: Iterable[str] = ()) -> None:
        self._entries: dict[str, bool] = {"/": True}
        for d in dirs:
            self.make_dirs(d)
        for f in files:
            self.add_file(f)

    @staticmethod
    def _norm(path: str) -> str:
        return posixpath.normpath("/" + str(path).strip().lstrip("/"))

    def _add_parents(self, path: str) -> None:
        parent = posixpath.dirname(path)
        while parent and parent not in self._entries:
            self._entries[parent] = True
            parent = posixpath.dirname(parent)

    def exists(self, path: str) -> bool:
        return self._norm(path) in self._entries

    def make_dirs(self, path: str) -> None:
        p = self._norm(path)
        if self._entries.get(p) is False:
            raise FileExistsError(f"Not a directory: {path}")
        self._add_parents(p)
        self._entries[p] = True

    def add_file(self, path: str) -> None:
        p = self._norm(path)
        if self._entries.get(p) is True:
            raise IsADirectoryError(f"Is a directory: {path}")
        self._add_parents(p)
        self._entries[p] = False

    def list_children(self, path: str) -> list[NamespaceEntry]:
        p = self._norm(path)
        if self._entries.get(p) is not True:
            raise FileNotFoundError(f"No such directory: {path}")
        out: list[NamespaceEntry] = []
        for child, is_dir in self._entries.items():
            if child != p and posixpath.dirname(child) == p:
                out.append(NamespaceEntry(name=posixpath.basename(child), is_dir=is_dir))
        return sorted(out, key=lambda e: e.name)

    def count_matching(self, path: str, fragment: str) -> int:
        frag = str(fragment)
        return sum(1 for e in self.list_children(path) if frag in e.name)

    def dirs(self) -> list[str]:
        return sorted(p for p, is_dir in self._entries.items() if is_dir)
