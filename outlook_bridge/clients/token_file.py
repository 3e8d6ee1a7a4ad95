"""JSON file persistence for the account registry document."""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from outlook_bridge.core.errors import StorageReadFailed, StorageWriteFailed


class TokenFileStore:
    """Read and replace the whole token document; never patches it in place."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Optional[Dict[str, Any]]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageReadFailed(f"Unable to read token file {self._path}: {exc}") from exc
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageReadFailed(f"Token file {self._path} is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise StorageReadFailed(f"Token file {self._path} does not contain a JSON object")
        return document

    def _write(self, document: Dict[str, Any]) -> None:
        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, indent=2)
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageWriteFailed(f"Unable to write token file {self._path}: {exc}") from exc

    def _delete(self) -> bool:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageWriteFailed(f"Unable to delete token file {self._path}: {exc}") from exc
        return True

    async def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored document, or ``None`` when no file exists."""
        return await asyncio.to_thread(self._read)

    async def save(self, document: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, document)

    async def delete(self) -> bool:
        """Remove the token file; returns ``False`` when it did not exist."""
        return await asyncio.to_thread(self._delete)


__all__ = ["TokenFileStore"]
