import logging
import os
import socket
from urllib.parse import urlparse

from lorekeeper.application.services.narrative_engine import NarrativeEngine
from lorekeeper.application.services.scheduler import ManualScheduler, Scheduler
from lorekeeper.application.settings import EngineSettings
from lorekeeper.domain.repositories import KeyValueStateRepository
from lorekeeper.domain.services.story_catalog import StoryCatalog
from lorekeeper.infrastructure.catalog_loader import DEFAULT_CATALOG_PATH, load_catalog_file
from lorekeeper.infrastructure.inmemory.inmemory_state_repo import InMemoryStateRepository
from lorekeeper.infrastructure.json_state_repo import JsonFileStateRepository


_DEFAULT_PORTS = {"mysql": 3306, "postgresql": 5432, "postgres": 5432}

_logger = logging.getLogger(__name__)


def _looks_like_local_database_unreachable(database_url: str) -> bool:
    if not database_url:
        return False

    parsed = urlparse(database_url)
    scheme = parsed.scheme.split("+", 1)[0]
    if scheme not in _DEFAULT_PORTS:
        return False

    host = (parsed.hostname or "").strip().lower()
    if host not in {"localhost", "127.0.0.1", "::1"}:
        return False

    port = parsed.port or _DEFAULT_PORTS[scheme]
    timeout = float(os.getenv("LOREKEEPER_DB_CONNECT_PROBE_TIMEOUT_S", "0.35"))

    try:
        with socket.create_connection((host, port), timeout=timeout):
            return False
    except OSError:
        return True


def _build_sql_state_repository() -> KeyValueStateRepository:
    from lorekeeper.infrastructure.db.sql.connection import ensure_schema
    from lorekeeper.infrastructure.db.sql.state_repo import SqlStateRepository

    repository = SqlStateRepository()
    # Force an early connectivity check so fallback happens before the session starts.
    try:
        ensure_schema()
        repository.load("__probe__", "progress")
    except Exception as exc:
        raise RuntimeError(f"Database bootstrap probe failed: {exc}") from exc
    return repository


def create_state_repository() -> KeyValueStateRepository:
    database_url = os.getenv("LOREKEEPER_DATABASE_URL")
    if database_url:
        if _looks_like_local_database_unreachable(database_url):
            print("Database appears unreachable, falling back to in-memory state.")
            return InMemoryStateRepository()
        try:
            return _build_sql_state_repository()
        except Exception as exc:  # pragma: no cover - best-effort fallback
            print(f"Database unavailable, falling back to in-memory state. Reason: {exc}")
            return InMemoryStateRepository()

    state_dir = os.getenv("LOREKEEPER_STATE_DIR", "").strip()
    if state_dir:
        return JsonFileStateRepository(state_dir)
    return InMemoryStateRepository()


def load_catalog() -> StoryCatalog:
    catalog_url = os.getenv("LOREKEEPER_CATALOG_URL", "").strip()
    if catalog_url:
        from lorekeeper.infrastructure.remote_catalog_client import RemoteCatalogClient

        client = RemoteCatalogClient(catalog_url)
        try:
            return client.fetch_catalog()
        finally:
            client.close()
    return load_catalog_file(os.getenv("LOREKEEPER_CATALOG_PATH", DEFAULT_CATALOG_PATH))


def create_narrative_engine(
    scheduler: Scheduler | None = None,
    *,
    catalog: StoryCatalog | None = None,
    repository: KeyValueStateRepository | None = None,
    settings: EngineSettings | None = None,
) -> NarrativeEngine:
    settings = settings or EngineSettings.from_env()
    catalog = catalog or load_catalog()
    repository = repository or create_state_repository()
    engine = NarrativeEngine(catalog, repository, scheduler or ManualScheduler(), settings)
    _logger.info(
        "Narrative engine ready",
        extra={
            "player_id": settings.player_id,
            "characters": len(catalog),
            "repository": type(repository).__name__,
        },
    )
    return engine
