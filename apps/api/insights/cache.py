from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from .config import settings
from .log import get_logger
from .schemas import BlogEntry

logger = get_logger(__name__)

_entries_adapter = TypeAdapter(list[BlogEntry])


class EntryCache:
    """All-or-nothing store for the last generated entry sequence, kept as one JSON blob.

    An absent, unreadable, malformed or empty blob loads as an empty list, which
    callers treat as a miss.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else settings.cache_path

    def load(self) -> list[BlogEntry]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.warning("Ignoring unreadable entry cache %s: %s", self.path, exc)
            return []
        if not raw.strip():
            return []
        try:
            return _entries_adapter.validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Ignoring malformed entry cache %s (%d validation errors)", self.path, exc.error_count()
            )
            return []

    def save(self, entries: Sequence[BlogEntry]) -> None:
        """Replace the blob in one step so readers never see a half-written batch."""
        payload = _entries_adapter.dump_json(list(entries), indent=2)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        finally:
            Path(tmp_name).unlink(missing_ok=True)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
