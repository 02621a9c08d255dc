"""Atomic JSON file storage."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

from ..errors import CorruptError, NotFoundError, StorageError

__all__ = ["FileStore"]

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class FileStore:
    """JSON files on disk with all-or-nothing writes.

    Writes go to a temporary sibling file which is then renamed over the
    destination, so a process killed mid-write never leaves a half-written
    file behind. Relative paths resolve against ``base_dir``.
    """

    def __init__(self, base_dir: PathLike = "."):
        self.base_dir = Path(base_dir)

    def _resolve(self, path: PathLike) -> Path:
        return self.base_dir / Path(path)

    def write_json(self, path: PathLike, value: Any) -> None:
        """Write ``value`` as pretty-printed JSON, atomically.

        Creates parent directories as needed. On failure the temp file is
        removed and the destination is left untouched.

        Raises:
            StorageError: If the file cannot be written
            TypeError: If ``value`` is not JSON serializable
        """
        full_path = self._resolve(path)
        temp_path = full_path.with_name(f"{full_path.name}.tmp.{os.getpid()}")

        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(value, indent=2, ensure_ascii=False)
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, full_path)
        except BaseException as e:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass
            if isinstance(e, OSError):
                raise StorageError(
                    f"Failed to write {full_path}: {e}", path=str(full_path)
                ) from e
            raise

    def read_json(self, path: PathLike) -> Any:
        """Read and parse a JSON file.

        Raises:
            NotFoundError: If the file does not exist
            CorruptError: If the content is not valid JSON
            StorageError: For other read failures
        """
        full_path = self._resolve(path)
        try:
            with open(full_path, "r", encoding="utf-8") as f:
                content = f.read()
        except FileNotFoundError:
            raise NotFoundError(f"File not found: {full_path}", path=str(full_path)) from None
        except OSError as e:
            raise StorageError(f"Failed to read {full_path}: {e}", path=str(full_path)) from e

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise CorruptError(
                f"Invalid JSON in {full_path}: {e}", path=str(full_path)
            ) from e

    def exists(self, path: PathLike) -> bool:
        """Check if a file exists. Never raises."""
        try:
            return self._resolve(path).is_file()
        except OSError:
            return False

    def list_files(self, directory: PathLike, extension: Optional[str] = None) -> list[str]:
        """List file names in a directory, optionally filtered by extension.

        Returns an empty list if the directory does not exist. Leftover temp
        files from interrupted writes are skipped.
        """
        full_path = self._resolve(directory)
        try:
            names = sorted(entry.name for entry in full_path.iterdir() if entry.is_file())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageError(f"Failed to list {full_path}: {e}", path=str(full_path)) from e

        names = [name for name in names if ".tmp." not in name]
        if extension:
            return [name for name in names if name.endswith(extension)]
        return names
