"""JSON file storage.

All state lives in flat JSON files under a configurable base directory, one
array of records per table. There is no database or ORM: every operation
reads the whole table, mutates it in memory and writes it back.

Directory layout:

    {base}/
      users.json          ← list of User records
      stories.json        ← list of Story records
      segments.json       ← list of StorySegment records (all stories)
      participants.json   ← list of StoryParticipant records (all stories)

Writes are not atomic and there is no locking; concurrent writers race and
the last write wins.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

USERS = "users"
STORIES = "stories"
SEGMENTS = "segments"
PARTICIPANTS = "participants"


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path

    @property
    def base_path(self) -> Path:
        return self._base

    def path(self, table: str) -> Path:
        return self._base / f"{table}.json"

    def read(self, table: str) -> list[dict[str, Any]]:
        """Load a table. Missing, unreadable or malformed files read as []."""
        path = self.path(table)
        if not path.is_file():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("table %s unreadable, treating as empty: %s", table, e)
            return []
        if not isinstance(data, list):
            logger.warning("table %s is not a JSON array, treating as empty", table)
            return []
        return data

    def write(self, table: str, records: list[dict[str, Any]]) -> None:
        """Overwrite a table with the given records."""
        self._base.mkdir(parents=True, exist_ok=True)
        self.path(table).write_text(
            json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8"
        )
