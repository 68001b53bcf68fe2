from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from lorekeeper.domain.repositories import KeyValueStateRepository, ProgressConflictError, StoredState

from .connection import SessionLocal


class SqlStateRepository(KeyValueStateRepository):
    """Versioned key-value rows in ``narrative_state``; writes are compare-and-swap."""

    def load(self, player_id: str, key: str) -> Optional[StoredState]:
        with SessionLocal() as session:
            row = session.execute(
                text(
                    """
                    SELECT payload, version
                    FROM narrative_state
                    WHERE player_id = :pid AND state_key = :key
                    """
                ),
                {"pid": player_id, "key": key},
            ).first()

            if not row:
                return None
            return StoredState(payload=str(row.payload), version=int(row.version))

    def save(self, player_id: str, key: str, payload: str, *, expected_version: int | None = None) -> int:
        try:
            with SessionLocal.begin() as session:
                row = session.execute(
                    text(
                        """
                        SELECT version
                        FROM narrative_state
                        WHERE player_id = :pid AND state_key = :key
                        """
                    ),
                    {"pid": player_id, "key": key},
                ).first()
                current_version = int(row.version) if row else 0
                if expected_version is not None and expected_version != current_version:
                    raise ProgressConflictError(
                        f"Stale write for {player_id}/{key}: expected v{expected_version}, found v{current_version}"
                    )

                next_version = current_version + 1
                if row is None:
                    session.execute(
                        text(
                            """
                            INSERT INTO narrative_state (player_id, state_key, payload, version)
                            VALUES (:pid, :key, :payload, :version)
                            """
                        ),
                        {"pid": player_id, "key": key, "payload": payload, "version": next_version},
                    )
                    return next_version

                result = session.execute(
                    text(
                        """
                        UPDATE narrative_state
                        SET payload = :payload, version = :next_version
                        WHERE player_id = :pid AND state_key = :key AND version = :current_version
                        """
                    ),
                    {
                        "pid": player_id,
                        "key": key,
                        "payload": payload,
                        "next_version": next_version,
                        "current_version": current_version,
                    },
                )
                if result.rowcount != 1:
                    raise ProgressConflictError(f"Concurrent write detected for {player_id}/{key}")
                return next_version
        except IntegrityError as exc:
            raise ProgressConflictError(f"Concurrent insert detected for {player_id}/{key}") from exc
