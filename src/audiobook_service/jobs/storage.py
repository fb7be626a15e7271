"""Workspace storage used to stage job inputs and outputs."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Dict, Iterator, List, Protocol, Set

LOGGER = logging.getLogger(__name__)

DEFAULT_READ_CHUNK = 64 * 1024


class WorkspaceStorage(Protocol):
    """Minimal file operations the stager and delivery layer depend on.

    Paths are absolute. Removing or reading a path that does not exist
    raises :class:`FileNotFoundError`.
    """

    root: Path

    def make_dir(self, path: Path) -> None: ...

    def write(self, path: Path, data: bytes) -> int: ...

    def read(self, path: Path) -> bytes: ...

    def iter_bytes(self, path: Path, chunk_size: int = DEFAULT_READ_CHUNK) -> Iterator[bytes]: ...

    def size(self, path: Path) -> int: ...

    def exists(self, path: Path) -> bool: ...

    def remove(self, path: Path) -> None: ...

    def remove_tree(self, path: Path) -> None: ...

    def list(self, path: Path) -> List[Path]: ...


class LocalStorage:
    """Storage backed by the local file system under ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def make_dir(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=False)

    def write(self, path: Path, data: bytes) -> int:
        return Path(path).write_bytes(data)

    def read(self, path: Path) -> bytes:
        return Path(path).read_bytes()

    def iter_bytes(self, path: Path, chunk_size: int = DEFAULT_READ_CHUNK) -> Iterator[bytes]:
        with open(path, "rb") as handle:
            while True:
                block = handle.read(chunk_size)
                if not block:
                    break
                yield block

    def size(self, path: Path) -> int:
        return Path(path).stat().st_size

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def remove(self, path: Path) -> None:
        Path(path).unlink()

    def remove_tree(self, path: Path) -> None:
        shutil.rmtree(path)

    def list(self, path: Path) -> List[Path]:
        return sorted(Path(path).iterdir())


class InMemoryStorage:
    """Dictionary backed storage with the same error semantics as :class:`LocalStorage`."""

    def __init__(self, root: str | Path = "/memory") -> None:
        self.root = Path(root)
        self._files: Dict[Path, bytes] = {}
        self._dirs: Set[Path] = {self.root}

    def make_dir(self, path: Path) -> None:
        path = Path(path)
        if path in self._dirs:
            raise FileExistsError(str(path))
        self._dirs.add(path)
        self._dirs.update(path.parents)

    def write(self, path: Path, data: bytes) -> int:
        path = Path(path)
        if path.parent not in self._dirs:
            raise FileNotFoundError(str(path.parent))
        self._files[path] = bytes(data)
        return len(data)

    def read(self, path: Path) -> bytes:
        try:
            return self._files[Path(path)]
        except KeyError:
            raise FileNotFoundError(str(path)) from None

    def iter_bytes(self, path: Path, chunk_size: int = DEFAULT_READ_CHUNK) -> Iterator[bytes]:
        data = self.read(path)
        for offset in range(0, len(data), chunk_size):
            yield data[offset : offset + chunk_size]

    def size(self, path: Path) -> int:
        return len(self.read(path))

    def exists(self, path: Path) -> bool:
        path = Path(path)
        return path in self._files or path in self._dirs

    def remove(self, path: Path) -> None:
        try:
            del self._files[Path(path)]
        except KeyError:
            raise FileNotFoundError(str(path)) from None

    def remove_tree(self, path: Path) -> None:
        path = Path(path)
        if path not in self._dirs:
            raise FileNotFoundError(str(path))
        self._files = {key: value for key, value in self._files.items() if path not in key.parents}
        self._dirs = {key for key in self._dirs if key != path and path not in key.parents}

    def list(self, path: Path) -> List[Path]:
        path = Path(path)
        if path not in self._dirs:
            raise FileNotFoundError(str(path))
        children = {key for key in self._files if key.parent == path}
        children.update(key for key in self._dirs if key.parent == path and key != path)
        return sorted(children)
