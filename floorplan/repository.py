"""Floor plan persistence and portable export format.

Plans are stored as one JSON document per plan in a storage directory, plus
an ``_index.json`` listing the stored ids:

    <storage_dir>/
        _index.json
        <plan_id>.json

The portable format used for sharing wraps the same field-for-field document
in a small envelope:

    {"format": "walkplan.floorplan", "version": 1, "plan": {...}}

Distances are meters, angles degrees, timestamps milliseconds since epoch.
Importing a malformed document never touches stored state.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .errors import FloorPlanFormatError
from .identity import Clock, IdGenerator, system_clock, uuid_ids
from .models import FloorPlan

logger = logging.getLogger(__name__)

FORMAT_NAME = "walkplan.floorplan"
FORMAT_VERSION = 1
INDEX_FILE = "_index.json"


def encode_plan(plan: FloorPlan) -> bytes:
    """Serialize a plan to the portable format."""
    document = {
        "format": FORMAT_NAME,
        "version": FORMAT_VERSION,
        "plan": plan.to_dict(),
    }
    return json.dumps(document, indent=2).encode("utf-8")


def decode_plan(data: bytes | str) -> FloorPlan:
    """Parse a portable document.

    Raises:
        FloorPlanFormatError: if the document is not valid JSON, has the wrong
            envelope, or the plan does not match the schema
    """
    try:
        document = json.loads(data)
    except (ValueError, RecursionError) as e:
        raise FloorPlanFormatError(f"Not a JSON document: {e}") from e

    if not isinstance(document, dict):
        raise FloorPlanFormatError("Document root must be an object")
    if document.get("format") != FORMAT_NAME:
        raise FloorPlanFormatError(f"Unsupported format: {document.get('format')!r}")
    if document.get("version") != FORMAT_VERSION:
        raise FloorPlanFormatError(f"Unsupported version: {document.get('version')!r}")

    try:
        return FloorPlan.from_dict(document.get("plan"))
    except (ValueError, OverflowError, RecursionError) as e:
        raise FloorPlanFormatError(f"Invalid plan: {e}") from e


class FloorPlanRepository:
    """JSON-file backed store of floor plans."""

    def __init__(
        self,
        storage_dir: Path | str,
        clock: Clock = system_clock,
        ids: IdGenerator = uuid_ids,
    ):
        self.storage_dir = Path(storage_dir).expanduser()
        self.clock = clock
        self.ids = ids
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def _plan_path(self, plan_id: str) -> Path:
        return self.storage_dir / f"{plan_id}.json"

    def _load_index(self) -> List[str]:
        index_path = self.storage_dir / INDEX_FILE
        if not index_path.exists():
            return []
        try:
            with open(index_path) as f:
                index = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable plan index, rebuilding from files: {e}")
            return sorted(
                p.stem for p in self.storage_dir.glob("*.json") if p.name != INDEX_FILE
            )
        return [i for i in index if isinstance(i, str)]

    def _save_index(self, index: List[str]) -> None:
        with open(self.storage_dir / INDEX_FILE, "w") as f:
            json.dump(index, f, indent=2)

    def save(self, plan: FloorPlan) -> str:
        """Save or update a plan, stamping ``modified_at``.

        Returns:
            The plan id
        """
        plan.modified_at = self.clock()

        with open(self._plan_path(plan.id), "w") as f:
            json.dump(plan.to_dict(), f, indent=2)

        index = self._load_index()
        if plan.id not in index:
            index.append(plan.id)
            self._save_index(index)

        logger.info(f"Saved floor plan {plan.id} ({plan.name})")
        return plan.id

    def get_by_id(self, plan_id: str) -> Optional[FloorPlan]:
        path = self._plan_path(plan_id)
        if not path.exists():
            return None
        try:
            with open(path) as f:
                return FloorPlan.from_dict(json.load(f))
        except (OSError, ValueError, RecursionError, FloorPlanFormatError) as e:
            logger.warning(f"Failed to load floor plan {plan_id}: {e}")
            return None

    def delete(self, plan_id: str) -> None:
        path = self._plan_path(plan_id)
        if path.exists():
            os.remove(path)

        index = self._load_index()
        if plan_id in index:
            index.remove(plan_id)
            self._save_index(index)

        logger.info(f"Deleted floor plan {plan_id}")

    def list_all(self) -> List[FloorPlan]:
        """All readable plans, most recently modified first."""
        plans = [p for p in (self.get_by_id(i) for i in self._load_index()) if p is not None]
        return sorted(plans, key=lambda p: p.modified_at, reverse=True)

    def export_to_portable_format(self, plan: FloorPlan) -> bytes:
        return encode_plan(plan)

    def import_from_portable_format(self, data: bytes | str) -> Optional[FloorPlan]:
        """Import a shared plan under a new identity and save it.

        Returns:
            The imported plan, or None if the document is malformed
        """
        try:
            decoded = decode_plan(data)
        except FloorPlanFormatError as e:
            logger.warning(f"Floor plan import failed: {e.message}")
            return None

        plan = replace(decoded, id=self.ids())
        self.save(plan)
        return plan
