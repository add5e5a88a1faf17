"""
Flat-file store for the UI's settings blob.

The blob is opaque here: whatever JSON object the UI posts is written back
verbatim on the next read.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from vam.logger import get_logger

logger = get_logger(__name__)


class SettingsStore:
    """Reads and writes a single JSON object on disk."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def get(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read settings from {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def set(self, data: dict[str, Any]) -> None:
        if not isinstance(data, dict):
            raise ValueError("Settings must be a JSON object")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".settings_tmp_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug(f"Saved settings to {self.path}")
