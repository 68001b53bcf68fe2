from typing import Dict, Optional, Tuple

from lorekeeper.domain.repositories import KeyValueStateRepository, ProgressConflictError, StoredState


class InMemoryStateRepository(KeyValueStateRepository):
    def __init__(self, seed: Optional[Dict[Tuple[str, str], str]] = None) -> None:
        self._rows: Dict[Tuple[str, str], StoredState] = {}
        for key, payload in (seed or {}).items():
            self._rows[key] = StoredState(payload=payload, version=1)

    def load(self, player_id: str, key: str) -> Optional[StoredState]:
        return self._rows.get((player_id, key))

    def save(self, player_id: str, key: str, payload: str, *, expected_version: int | None = None) -> int:
        current = self._rows.get((player_id, key))
        current_version = current.version if current else 0
        if expected_version is not None and expected_version != current_version:
            raise ProgressConflictError(
                f"Stale write for {player_id}/{key}: expected v{expected_version}, found v{current_version}"
            )
        next_version = current_version + 1
        self._rows[(player_id, key)] = StoredState(payload=payload, version=next_version)
        return next_version
