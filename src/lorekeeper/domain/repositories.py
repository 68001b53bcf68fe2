from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


class ProgressConflictError(RuntimeError):
    """Raised when a versioned write was based on a stale read."""


@dataclass(frozen=True)
class StoredState:
    payload: str
    version: int = 0


class KeyValueStateRepository(ABC):
    """Storage port for per-player narrative blobs (``progress``, ``relationships``)."""

    @abstractmethod
    def load(self, player_id: str, key: str) -> Optional[StoredState]:
        raise NotImplementedError

    @abstractmethod
    def save(self, player_id: str, key: str, payload: str, *, expected_version: int | None = None) -> int:
        """Persist ``payload`` and return the new version stamp.

        Versions start at 1 for the first write; an absent record has version
        0. When ``expected_version`` is given the write only succeeds if the
        stored version still matches it, otherwise ``ProgressConflictError``
        is raised.
        """
        raise NotImplementedError
