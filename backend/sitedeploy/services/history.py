"""
Deployment history persisted as a single JSON file.

Every mutation reads the whole list, changes it and writes it back. There is
no locking: two overlapping mutations can lose one of the updates
(last writer wins). Acceptable for a single-operator tool.
"""
import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..schemas import DeploymentRecord, DeployTarget

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = {"id", "storage_prefix", "created_at"}


class HistoryStore:
    """Bounded, newest-first list of DeploymentRecord."""

    def __init__(self, path: Union[str, Path], limit: int = 50):
        self.path = Path(path)
        self.limit = limit

    def _read(self) -> List[DeploymentRecord]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning(f"History file {self.path} unreadable, treating as empty: {e}")
            return []

        records = []
        for item in raw if isinstance(raw, list) else []:
            try:
                records.append(DeploymentRecord.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed history entry: {e}")
        return records

    def _write(self, records: List[DeploymentRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [r.model_dump(mode="json") for r in records]
        self.path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    async def _load(self) -> List[DeploymentRecord]:
        return await asyncio.to_thread(self._read)

    async def _dump(self, records: List[DeploymentRecord]) -> None:
        await asyncio.to_thread(self._write, records)

    async def list(self) -> List[DeploymentRecord]:
        return await self._load()

    async def get(self, record_id: str) -> Optional[DeploymentRecord]:
        for record in await self._load():
            if record.id == record_id:
                return record
        return None

    async def find(self, logical_name: str, target: DeployTarget) -> Optional[DeploymentRecord]:
        """Most recent record for a logical name and target."""
        for record in await self._load():
            if record.logical_name == logical_name and record.target == target:
                return record
        return None

    async def save(self, record: DeploymentRecord) -> DeploymentRecord:
        records = await self._load()
        records.insert(0, record)
        evicted = records[self.limit:]
        if evicted:
            logger.info(f"History limit {self.limit} reached, evicting {len(evicted)} oldest record(s)")
        await self._dump(records[:self.limit])
        return record

    async def update(self, record_id: str, fields: Dict[str, Any]) -> Optional[DeploymentRecord]:
        """Merge fields into a record. Returns None when the id is unknown."""
        records = await self._load()
        for index, record in enumerate(records):
            if record.id != record_id:
                continue
            changes = {k: v for k, v in fields.items() if k not in IMMUTABLE_FIELDS}
            changes["updated_at"] = datetime.now(timezone.utc)
            updated = DeploymentRecord.model_validate({**record.model_dump(), **changes})
            records[index] = updated
            await self._dump(records)
            return updated
        return None

    async def delete(self, record_id: str) -> List[DeploymentRecord]:
        records = await self._load()
        remaining = [r for r in records if r.id != record_id]
        await self._dump(remaining)
        return remaining
