import json
import logging
import os
import re
from pathlib import Path
from typing import Optional

from lorekeeper.domain.repositories import KeyValueStateRepository, ProgressConflictError, StoredState


_SAFE_SEGMENT = re.compile(r"[^A-Za-z0-9_.-]")

_logger = logging.getLogger(__name__)


class JsonFileStateRepository(KeyValueStateRepository):
    """One JSON envelope per (player, key) under ``root_dir``, replaced atomically."""

    def __init__(self, root_dir: str | Path) -> None:
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, player_id: str, key: str) -> Path:
        player_dir = _SAFE_SEGMENT.sub("_", player_id) or "_"
        return self.root_dir / player_dir / f"{_SAFE_SEGMENT.sub('_', key)}.json"

    def load(self, player_id: str, key: str) -> Optional[StoredState]:
        path = self._path_for(player_id, key)
        if not path.exists():
            return None
        raw = path.read_bytes().decode("utf-8", errors="replace")
        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError:
            envelope = None
        if not isinstance(envelope, dict) or not isinstance(envelope.get("payload"), str):
            _logger.warning("Unreadable state envelope", extra={"path": str(path)})
            # hand the raw text upward so the caller decides how to recover
            return StoredState(payload=raw, version=0)
        try:
            version = int(envelope.get("version", 0))
        except (TypeError, ValueError):
            version = 0
        return StoredState(payload=envelope["payload"], version=version)

    def save(self, player_id: str, key: str, payload: str, *, expected_version: int | None = None) -> int:
        current = self.load(player_id, key)
        current_version = current.version if current else 0
        if expected_version is not None and expected_version != current_version:
            raise ProgressConflictError(
                f"Stale write for {player_id}/{key}: expected v{expected_version}, found v{current_version}"
            )
        next_version = current_version + 1
        path = self._path_for(player_id, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        envelope = {"version": next_version, "payload": payload}
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(envelope, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, path)
        return next_version
