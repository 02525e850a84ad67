import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from metrics_bus.core.errors import StorageError

from shared.utils.concurrency import run_blocking


class FileStorage:
    """One JSON document per key inside ``directory``.

    Writes go to a temporary file that replaces the target, so a crash never
    leaves a half-written record behind.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "._-" else "_" for c in key)
        return self.directory / f"{safe}.json"

    async def load(self, key: str) -> Optional[Any]:
        return await run_blocking(self._read, key)

    async def save(self, key: str, value: Any) -> None:
        await run_blocking(self._write, key, value)

    async def close(self) -> None:
        return None

    def _read(self, key: str) -> Optional[Any]:
        path = self.path_for(key)
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return None
        except ValueError as e:
            raise StorageError(key, f"corrupt json in {path}: {e}") from e
        except OSError as e:
            raise StorageError(key, f"cannot read {path}: {e}") from e

    def _write(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=self.directory, prefix=f".{path.stem}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(value, fh)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(key, f"cannot write {path}: {e}") from e
