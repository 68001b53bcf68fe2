from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from lorekeeper.domain.models.progress import ProgressRecord, clamp_relationship
from lorekeeper.domain.repositories import KeyValueStateRepository


PROGRESS_KEY = "progress"
RELATIONSHIPS_KEY = "relationships"

_logger = logging.getLogger(__name__)


def _decode_progress(raw: str) -> ProgressRecord:
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError("progress blob must be an object")

    def _id_list(field_name: str) -> set[str]:
        value = payload.get(field_name, [])
        if not isinstance(value, list):
            raise ValueError(f"progress.{field_name} must be a list")
        return {str(item) for item in value}

    percent_raw = payload.get("story_percent", {})
    if not isinstance(percent_raw, dict):
        raise ValueError("progress.story_percent must be an object")
    story_percent = {str(key): max(0, min(100, int(value))) for key, value in percent_raw.items()}
    return ProgressRecord(
        unlocked=_id_list("unlocked"),
        completed=_id_list("completed"),
        story_percent=story_percent,
    )


def _decode_relationships(raw: str) -> dict[str, int]:
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError("relationships blob must be an object")
    scores: dict[str, int] = {}
    for key, value in payload.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"relationship score for {key} must be numeric")
        scores[str(key)] = clamp_relationship(int(value))
    return scores


def encode_progress(record: ProgressRecord) -> str:
    payload: dict[str, Any] = {
        "unlocked": sorted(record.unlocked),
        "completed": sorted(record.completed),
        "story_percent": {key: int(value) for key, value in sorted(record.story_percent.items())},
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def encode_relationships(record: ProgressRecord) -> str:
    return json.dumps({key: int(value) for key, value in sorted(record.relationships.items())}, sort_keys=True, separators=(",", ":"))


class ProgressStore:
    """Per-session owner of the player's narrative progress.

    Every mutating call persists immediately through the storage port. Loads
    never raise for bad data: a missing or malformed blob is discarded and
    replaced with empty defaults.
    """

    def __init__(self, repository: KeyValueStateRepository, player_id: str = "local") -> None:
        self._repository = repository
        self.player_id = str(player_id)
        self._record = ProgressRecord()
        self._versions: dict[str, int] = {PROGRESS_KEY: 0, RELATIONSHIPS_KEY: 0}
        self.load()

    @property
    def record(self) -> ProgressRecord:
        return self._record

    def load(self) -> ProgressRecord:
        progress = ProgressRecord()
        progress_state = self._read(PROGRESS_KEY)
        if progress_state is not None:
            try:
                progress = _decode_progress(progress_state)
            except (ValueError, TypeError, OverflowError) as exc:
                _logger.warning(
                    "Discarding unreadable story progress",
                    extra={"player_id": self.player_id, "key": PROGRESS_KEY, "reason": str(exc)},
                )
                progress = ProgressRecord()

        relationships_state = self._read(RELATIONSHIPS_KEY)
        if relationships_state is not None:
            try:
                progress.relationships = _decode_relationships(relationships_state)
            except (ValueError, TypeError, OverflowError) as exc:
                _logger.warning(
                    "Discarding unreadable relationship scores",
                    extra={"player_id": self.player_id, "key": RELATIONSHIPS_KEY, "reason": str(exc)},
                )
                progress.relationships = {}

        self._record = progress
        return progress

    def _read(self, key: str) -> str | None:
        stored = self._repository.load(self.player_id, key)
        if stored is None:
            self._versions[key] = 0
            return None
        self._versions[key] = int(stored.version)
        return stored.payload

    def _write(self, key: str, payload: str) -> None:
        version = self._repository.save(
            self.player_id,
            key,
            payload,
            expected_version=self._versions.get(key, 0),
        )
        self._versions[key] = int(version)

    def _save_progress(self) -> None:
        self._write(PROGRESS_KEY, encode_progress(self._record))

    def _save_relationships(self) -> None:
        self._write(RELATIONSHIPS_KEY, encode_relationships(self._record))

    def save(self) -> None:
        self._save_progress()
        self._save_relationships()

    def relationships(self) -> dict[str, int]:
        return dict(self._record.relationships)

    def relationship(self, character_id: str) -> int:
        return self._record.relationship(character_id)

    def mark_unlocked(self, story_ids: Iterable[str]) -> list[str]:
        added = [str(story_id) for story_id in story_ids if str(story_id) not in self._record.unlocked]
        if not added:
            return []
        self._record.unlocked.update(added)
        self._save_progress()
        return added

    def set_story_percent(self, story_id: str, percent: int) -> int:
        value = max(0, min(100, int(percent)))
        current = self._record.story_percent.get(story_id, 0)
        # completion percentage never regresses on replay
        value = max(value, current)
        if value != current or story_id not in self._record.story_percent:
            self._record.story_percent[story_id] = value
            self._save_progress()
        return value

    def mark_completed(self, story_id: str) -> None:
        self._record.completed.add(story_id)
        self._record.unlocked.add(story_id)
        self._record.story_percent[story_id] = 100
        self._save_progress()

    def apply_relationship_delta(self, character_id: str, change: int) -> tuple[int, int]:
        before = self._record.relationship(character_id)
        after = clamp_relationship(before + int(change))
        self._record.relationships[character_id] = after
        self._save_relationships()
        return before, after

    def reset(self) -> None:
        self._record = ProgressRecord()
        self.save()
